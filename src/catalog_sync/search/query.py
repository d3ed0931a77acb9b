"""
Построение поискового запроса и пагинация поиска.

Алгоритм:
- непустой query -> multi_match (best_fields) по title^2 и description
- каждый фильтр -> отдельный term
- нет ни одного условия -> match_all
- условия объединяются через bool.must (AND)
- сортировка по created_at desc
- from = page_size * (page - 1), size = page_size
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from catalog_sync.common.pagination import (
    DEFAULT_PAGE,
    DEFAULT_PAGE_SIZE,
    page_count,
    page_offset,
)

MATCH_FIELDS = ["title^2", "description"]


@dataclass
class SearchRequest:
    query: str = ""
    page: int = DEFAULT_PAGE
    page_size: int = DEFAULT_PAGE_SIZE
    filters: dict[str, Any] = field(default_factory=dict)


@dataclass
class SearchResult:
    total: int
    hits: list[dict[str, Any]]
    page: int
    size: int

    @property
    def page_count(self) -> int:
        return page_count(self.total, self.size)


def build_search_query(req: SearchRequest) -> dict[str, Any]:
    must: list[dict[str, Any]] = []

    if req.query:
        must.append(
            {
                "multi_match": {
                    "query": req.query,
                    "fields": list(MATCH_FIELDS),
                    "type": "best_fields",
                }
            }
        )

    for name, value in (req.filters or {}).items():
        must.append({"term": {name: value}})

    query: dict[str, Any] = {"bool": {"must": must}} if must else {"match_all": {}}

    return {
        "query": query,
        "sort": [{"created_at": {"order": "desc"}}],
        "from": page_offset(req.page, req.page_size),
        "size": req.page_size,
    }
