"""
Контракты задач очереди (payload'ы).

Важно:
- payload всегда компактный JSON (model_dump_json)
- каждому TaskType соответствует ровно одна модель payload
- битый payload -> PermanentTaskError (ретрай не поможет)
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from catalog_sync.common.errors import PermanentTaskError
from catalog_sync.domain.enums import SourceType, TaskType

from .entities import EpisodeAssetSnapshot, EpisodeSnapshot, SeriesSnapshot


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class IndexSeriesPayload(_Payload):
    series: SeriesSnapshot


class IndexEpisodePayload(_Payload):
    episode: EpisodeSnapshot
    assets: list[EpisodeAssetSnapshot] = Field(default_factory=list)


class DeleteSeriesPayload(_Payload):
    series_id: str = Field(min_length=1)


class DeleteEpisodePayload(_Payload):
    episode_id: str = Field(min_length=1)


class ImportContentPayload(_Payload):
    # str, а не SourceType: неподдерживаемый тип должен дойти до реестра импортёров
    source_type: str
    source_url: str
    series_id: str

    @classmethod
    def of(
        cls, source_type: SourceType | str, source_url: str, series_id: str
    ) -> ImportContentPayload:
        st = source_type.value if isinstance(source_type, SourceType) else str(source_type)
        return cls(source_type=st, source_url=source_url, series_id=series_id)


PAYLOAD_MODELS: dict[TaskType, type[BaseModel]] = {
    TaskType.index_series: IndexSeriesPayload,
    TaskType.index_episode: IndexEpisodePayload,
    TaskType.delete_series: DeleteSeriesPayload,
    TaskType.delete_episode: DeleteEpisodePayload,
    TaskType.import_content: ImportContentPayload,
}


def decode_payload(task_type: TaskType, raw: str | bytes) -> BaseModel:
    """
    JSON -> модель payload для task_type.
    """
    model = PAYLOAD_MODELS[task_type]
    try:
        return model.model_validate_json(raw)
    except PydanticValidationError as e:
        raise PermanentTaskError(
            "malformed payload",
            {"task_type": task_type.value, "errors": e.error_count()},
        ) from e
