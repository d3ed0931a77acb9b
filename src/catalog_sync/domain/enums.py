"""
Доменные перечисления (enum).

Используются во всей системе:
- типы задач очереди (wire-значения стабильны, менять только с миграцией)
- типы источников импорта
- состояние задачи в диспетчере
"""

from __future__ import annotations

import enum


class TaskType(str, enum.Enum):
    """
    Закрытый набор типов задач.
    """

    index_series = "search:index_series"
    index_episode = "search:index_episode"
    delete_series = "search:delete_series"
    delete_episode = "search:delete_episode"
    import_content = "import:content"

    @classmethod
    def parse(cls, raw: str | None) -> TaskType | None:
        """Wire-строка -> TaskType, неизвестный тип -> None."""
        try:
            return cls(raw)
        except ValueError:
            return None


class SourceType(str, enum.Enum):
    """
    Внешний источник контента для импорта.
    """

    youtube = "youtube"
    spotify = "spotify"
    rss = "rss"
    vimeo = "vimeo"


class SeriesType(str, enum.Enum):
    documentary = "documentary"
    podcast = "podcast"


class AssetType(str, enum.Enum):
    audio = "audio"
    video = "video"
    thumbnail = "thumbnail"


class TaskState(str, enum.Enum):
    """
    Состояние задачи в диспетчере.
    """

    enqueued = "enqueued"
    processing = "processing"
    succeeded = "succeeded"
    retrying = "retrying"
    dead_lettered = "dead_lettered"
