"""
Схемы индексов OpenSearch.

- id-поля и фильтры: keyword (точное совпадение, term)
- title: text + сырой подполе title.keyword
- description: text
- даты: date
"""

from __future__ import annotations

from typing import Any

_INDEX_SETTINGS: dict[str, Any] = {
    "number_of_shards": 1,
    "number_of_replicas": 0,
    "analysis": {"analyzer": {"standard": {"type": "standard"}}},
}

_TITLE = {"type": "text", "analyzer": "standard", "fields": {"keyword": {"type": "keyword"}}}
_DESCRIPTION = {"type": "text", "analyzer": "standard"}
_KEYWORD = {"type": "keyword"}
_DATE = {"type": "date"}

SERIES_MAPPING: dict[str, Any] = {
    "mappings": {
        "properties": {
            "id": _KEYWORD,
            "title": _TITLE,
            "description": _DESCRIPTION,
            "category_id": _KEYWORD,
            "language": _KEYWORD,
            "type": _KEYWORD,
            "created_at": _DATE,
            "updated_at": _DATE,
            "indexed_at": _DATE,
        }
    },
    "settings": _INDEX_SETTINGS,
}

EPISODE_MAPPING: dict[str, Any] = {
    "mappings": {
        "properties": {
            "id": _KEYWORD,
            "series_id": _KEYWORD,
            "title": _TITLE,
            "description": _DESCRIPTION,
            "duration_seconds": {"type": "integer"},
            "publish_date": _DATE,
            "mime_type": _KEYWORD,
            "size_bytes": {"type": "long"},
            "created_at": _DATE,
            "updated_at": _DATE,
            "indexed_at": _DATE,
        }
    },
    "settings": _INDEX_SETTINGS,
}


def series_index(prefix: str) -> str:
    return f"{prefix}-series"


def episodes_index(prefix: str) -> str:
    return f"{prefix}-episodes"


def index_names(prefix: str) -> dict[str, dict[str, Any]]:
    """
    Имя индекса -> схема. Порядок стабилен (series, episodes).
    """
    return {
        series_index(prefix): SERIES_MAPPING,
        episodes_index(prefix): EPISODE_MAPPING,
    }
