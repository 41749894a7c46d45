"""Show library: the load -> mutate -> save cycle and upload ingestion.

``ShowLibrary`` is the only place that touches both the DocumentStore and the
AssetStore. Each public method holds a process-wide lock for its whole
cycle, so threaded request handlers in one process never interleave their
read-modify-write. Separate processes are not coordinated.

Episode-scoped methods accept ``series_id=None`` to address the first
series, which is what the legacy single-show API works on.
"""

import logging
import threading
from collections.abc import Sequence
from dataclasses import dataclass

from lifestory.core.document_store import DocumentStore
from lifestory.core.errors import InvalidInputError
from lifestory.core.lifecycle import LifecycleCoordinator
from lifestory.core.series_repository import UNSET, NewMedia, SeriesRepository
from lifestory.models.media_types import AssetKind, is_allowed
from lifestory.models.show_document import (
    DEFAULT_SHOW_TITLE,
    Episode,
    MediaItem,
    Series,
    ShowDocument,
)
from lifestory.services.asset_store import AssetStore, StoredAsset, create_asset_store

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class Upload:
    """A file received from a client, not yet stored."""

    filename: str
    data: bytes
    content_type: str | None = None


@dataclass
class UploadLimits:
    thumbnail_bytes: int = 50 * MB
    media_bytes: int = 500 * MB
    music_bytes: int = 100 * MB
    max_media_files: int = 50

    @classmethod
    def from_settings(cls, settings) -> "UploadLimits":
        return cls(
            thumbnail_bytes=settings.max_thumbnail_mb * MB,
            media_bytes=settings.max_media_mb * MB,
            music_bytes=settings.max_music_mb * MB,
            max_media_files=settings.max_media_files,
        )

    def max_bytes(self, kind: AssetKind) -> int:
        if kind is AssetKind.MEDIA:
            return self.media_bytes
        if kind is AssetKind.MUSIC:
            return self.music_bytes
        return self.thumbnail_bytes


class ShowLibrary:
    def __init__(
        self,
        documents: DocumentStore,
        assets: AssetStore,
        limits: UploadLimits | None = None,
    ):
        self.documents = documents
        self.assets = assets
        self.limits = limits or UploadLimits()
        self.coordinator = LifecycleCoordinator(assets)
        self.repository = SeriesRepository(self.coordinator)
        self._lock = threading.RLock()

    @classmethod
    def from_settings(cls, settings) -> "ShowLibrary":
        return cls(
            DocumentStore(settings.data_file),
            create_asset_store(settings),
            UploadLimits.from_settings(settings),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _resolve_series_id(doc: ShowDocument, series_id: str | None) -> str:
        if series_id is not None:
            return series_id
        if not doc.series:
            raise InvalidInputError("No series found")
        return doc.series[0].id

    def _apply(self, operation, series_id: str | None, *args):
        with self._lock:
            doc = self.documents.load()
            series_id = self._resolve_series_id(doc, series_id)
            doc, value = operation(doc, series_id, *args)
            self.documents.save(doc)
            return value

    def _accept(self, kind: AssetKind, uploads: Sequence[Upload | None]) -> list[Upload]:
        """Drop files of a disallowed type; reject oversized ones."""
        accepted = []
        limit = self.limits.max_bytes(kind)
        for upload in uploads:
            if upload is None or not upload.filename:
                continue
            if not is_allowed(kind, upload.filename):
                logger.warning(
                    "Ignoring %s upload with unsupported type: %s", kind.value, upload.filename
                )
                continue
            if len(upload.data) > limit:
                raise InvalidInputError(
                    f"{upload.filename} exceeds the {limit // MB} MB limit for {kind.value}"
                )
            accepted.append(upload)
        if not accepted:
            raise InvalidInputError(
                "No files uploaded" if kind is AssetKind.MEDIA else "No file uploaded"
            )
        return accepted

    def _store(self, kind: AssetKind, upload: Upload) -> StoredAsset:
        return self.assets.put(upload.data, kind.folder, upload.filename, upload.content_type)

    # ------------------------------------------------------------------
    # Series
    # ------------------------------------------------------------------

    def list_series(self) -> list[Series]:
        with self._lock:
            return self.repository.list_series(self.documents.load())

    def get_series(self, series_id: str) -> Series:
        with self._lock:
            return self.repository.get_series(self.documents.load(), series_id)

    def create_series(
        self,
        title: str | None = None,
        description: str | None = None,
        episode_count: int | None = None,
    ) -> Series:
        with self._lock:
            doc, series = self.repository.create_series(
                self.documents.load(), title, description, episode_count
            )
            self.documents.save(doc)
            return series

    def update_series(
        self,
        series_id: str,
        *,
        title=UNSET,
        description=UNSET,
        episode_count=UNSET,
        episodes=UNSET,
    ) -> Series:
        with self._lock:
            doc, series = self.repository.update_series(
                self.documents.load(),
                series_id,
                title=title,
                description=description,
                episode_count=episode_count,
                episodes=episodes,
            )
            self.documents.save(doc)
            return series

    def delete_series(self, series_id: str) -> int:
        return self._apply(self.repository.delete_series, series_id)

    def upload_series_thumbnail(self, series_id: str, upload: Upload | None) -> StoredAsset:
        (upload,) = self._accept(AssetKind.SERIES_THUMBNAIL, [upload])
        with self._lock:
            doc = self.documents.load()
            self.repository.get_series(doc, series_id)
            stored = self._store(AssetKind.SERIES_THUMBNAIL, upload)
            doc, _ = self.repository.set_series_thumbnail(doc, series_id, stored.url)
            self.documents.save(doc)
            return stored

    # ------------------------------------------------------------------
    # Episode assets (series_id=None -> first series)
    # ------------------------------------------------------------------

    def upload_episode_thumbnail(
        self, series_id: str | None, episode_index: int, upload: Upload | None
    ) -> StoredAsset:
        (upload,) = self._accept(AssetKind.THUMBNAIL, [upload])
        with self._lock:
            doc = self.documents.load()
            series_id = self._resolve_series_id(doc, series_id)
            self.repository.get_episode(doc, series_id, episode_index)
            stored = self._store(AssetKind.THUMBNAIL, upload)
            doc, _ = self.repository.set_episode_thumbnail(
                doc, series_id, episode_index, stored.url
            )
            self.documents.save(doc)
            return stored

    def upload_episode_music(
        self, series_id: str | None, episode_index: int, upload: Upload | None
    ) -> StoredAsset:
        (upload,) = self._accept(AssetKind.MUSIC, [upload])
        with self._lock:
            doc = self.documents.load()
            series_id = self._resolve_series_id(doc, series_id)
            self.repository.get_episode(doc, series_id, episode_index)
            stored = self._store(AssetKind.MUSIC, upload)
            doc, _ = self.repository.set_episode_music(
                doc, series_id, episode_index, stored.url, upload.filename
            )
            self.documents.save(doc)
            return stored

    def delete_episode_music(self, series_id: str | None, episode_index: int) -> bool:
        with self._lock:
            doc = self.documents.load()
            series_id = self._resolve_series_id(doc, series_id)
            doc, cleared = self.repository.delete_episode_music(doc, series_id, episode_index)
            if cleared:
                self.documents.save(doc)
            return cleared

    def upload_media(
        self, series_id: str | None, episode_index: int, uploads: Sequence[Upload]
    ) -> list[MediaItem]:
        if len(uploads) > self.limits.max_media_files:
            raise InvalidInputError(f"Too many files (max {self.limits.max_media_files})")
        accepted = self._accept(AssetKind.MEDIA, uploads)
        with self._lock:
            doc = self.documents.load()
            series_id = self._resolve_series_id(doc, series_id)
            self.repository.get_episode(doc, series_id, episode_index)

            stored: list[tuple[Upload, StoredAsset]] = []
            try:
                for upload in accepted:
                    stored.append((upload, self._store(AssetKind.MEDIA, upload)))
            except Exception:
                # nothing references the partial batch yet
                self.coordinator.discard_all((asset.key, None) for _, asset in stored)
                raise

            items = [
                NewMedia(original_name=upload.filename, asset_ref=asset.url, key=asset.key)
                for upload, asset in stored
            ]
            doc, added = self.repository.add_media(doc, series_id, episode_index, items)
            self.documents.save(doc)
            return added

    def delete_media(self, series_id: str | None, episode_index: int, media_id: str) -> MediaItem:
        return self._apply(self.repository.delete_media, series_id, episode_index, media_id)

    def reorder_media(
        self, series_id: str | None, episode_index: int, ordered_ids: list
    ) -> list[MediaItem]:
        if not isinstance(ordered_ids, list):
            raise InvalidInputError("mediaIds must be an array")
        return self._apply(self.repository.reorder_media, series_id, episode_index, ordered_ids)

    # ------------------------------------------------------------------
    # Legacy single-show view
    # ------------------------------------------------------------------

    @staticmethod
    def _legacy_view(series: Series) -> dict:
        return {
            "showTitle": series.title,
            "episodeCount": series.episode_count,
            "episodes": [episode.to_json() for episode in series.episodes],
        }

    def get_legacy_show(self) -> dict:
        with self._lock:
            doc = self.documents.load()
        if doc.series:
            return self._legacy_view(doc.series[0])
        return {
            "showTitle": DEFAULT_SHOW_TITLE,
            "episodeCount": 1,
            "episodes": [Episode.numbered(1).to_json()],
        }

    def save_legacy_show(
        self,
        show_title: str | None = None,
        episode_count: int | None = None,
        episodes: list | None = None,
    ) -> dict:
        with self._lock:
            doc, series = self.repository.save_legacy_show(
                self.documents.load(), show_title, episode_count, episodes
            )
            self.documents.save(doc)
            return self._legacy_view(series)
