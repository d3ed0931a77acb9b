"""
Импортёр YouTube.

- series_id должен быть UUID, иначе ValidationError("invalid series ID")
- один ассет: video, video/mp4, url = исходная ссылка
- заголовок по умолчанию "YouTube Import"; при YOUTUBE_OEMBED_ENABLED=true
  берётся из oEmbed (ошибка HTTP -> ProviderError, задача ретраится)
"""

from __future__ import annotations

import requests

from catalog_sync.common.config import get_settings
from catalog_sync.common.errors import ErrCode, ProviderError, ValidationError
from catalog_sync.common.ids import new_uuid, parse_uuid
from catalog_sync.common.logging import get_project_logger
from catalog_sync.domain.enums import AssetType

from .base import AssetDraft, EpisodeDraft

log = get_project_logger()

DEFAULT_TITLE = "YouTube Import"


class YouTubeImporter:
    def __init__(
        self,
        *,
        oembed_enabled: bool = False,
        oembed_url: str = "https://www.youtube.com/oembed",
        timeout_sec: float = 10.0,
    ) -> None:
        self.oembed_enabled = oembed_enabled
        self.oembed_url = oembed_url
        self.timeout_sec = timeout_sec

    @classmethod
    def from_settings(cls) -> YouTubeImporter:
        s = get_settings()
        return cls(
            oembed_enabled=s.youtube_oembed_enabled,
            oembed_url=s.youtube_oembed_url,
            timeout_sec=s.importer_http_timeout_sec,
        )

    def _fetch_title(self, source_url: str) -> str:
        try:
            resp = requests.get(
                self.oembed_url,
                params={"url": source_url, "format": "json"},
                timeout=self.timeout_sec,
            )
            resp.raise_for_status()
        except requests.RequestException as e:
            raise ProviderError(
                ErrCode.IMPORTER_PROVIDER_ERROR,
                "Ошибка обращения к YouTube oEmbed",
                {"source_url": source_url, "err": str(e)[:200]},
            ) from e

        try:
            data = resp.json()
        except ValueError:
            data = {}
        title = str(data.get("title") or "").strip() if isinstance(data, dict) else ""
        return title or DEFAULT_TITLE

    def fetch_episode(self, source_url: str, series_id: str) -> tuple[EpisodeDraft, AssetDraft]:
        try:
            series_uuid = parse_uuid(series_id, field="series_id")
        except ValidationError as e:
            raise ValidationError("invalid series ID", e.details) from e

        title = self._fetch_title(source_url) if self.oembed_enabled else DEFAULT_TITLE

        episode = EpisodeDraft(id=new_uuid(), series_id=series_uuid, title=title)
        asset = AssetDraft(
            episode_id=episode.id,
            asset_type=AssetType.video.value,
            mime_type="video/mp4",
            url=source_url,
        )
        log.info(
            "youtube_episode_fetched",
            extra={"payload": {"series_id": str(series_uuid), "oembed": self.oembed_enabled}},
        )
        return episode, asset
