"""Series, episode and media operations over an explicit ShowDocument.

Every mutating operation takes the current document, works on a deep copy
and returns ``(new_document, value)``. The caller persists the new document;
the input document is never modified.

Episodes have no ids and are addressed by position. Truncating or replacing
the episode list invalidates indices handed out earlier.
"""

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from lifestory.core.errors import InvalidIndexError, InvalidInputError, NotFoundError
from lifestory.core.lifecycle import LifecycleCoordinator
from lifestory.models.media_types import AssetKind, classify_media
from lifestory.models.show_document import (
    DEFAULT_SHOW_TITLE,
    Episode,
    MediaItem,
    Series,
    ShowDocument,
)

logger = logging.getLogger(__name__)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET: Any = _Unset()


@dataclass
class NewMedia:
    """One stored upload waiting to be attached to an episode."""

    original_name: str
    asset_ref: str
    key: str | None = None


def _working_copy(doc: ShowDocument) -> ShowDocument:
    return doc.model_copy(deep=True)


def _require_count(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise InvalidInputError("episodeCount must be a non-negative integer")
    return value


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidInputError(f"{field} must be a string")
    return value


def _require_episodes(value: Any) -> list[Episode]:
    if not isinstance(value, list):
        raise InvalidInputError("episodes must be an array")
    try:
        return [e if isinstance(e, Episode) else Episode.model_validate(e) for e in value]
    except ValidationError as e:
        raise InvalidInputError(f"Invalid episodes: {e.error_count()} validation error(s)") from e


def _reconcile_episodes(series: Series, count: int) -> None:
    """Grow with numbered empty episodes or truncate from the end.

    Truncated episodes keep their files in storage; those references are
    only reported here.
    """
    episodes = series.episodes
    while len(episodes) < count:
        episodes.append(Episode.numbered(len(episodes) + 1))
    if len(episodes) > count:
        orphaned = [ref for episode in episodes[count:] for ref in episode.asset_refs()]
        if orphaned:
            logger.warning(
                "Series %s truncated to %d episode(s); %d asset(s) left in storage: %s",
                series.id,
                count,
                len(orphaned),
                ", ".join(orphaned),
            )
        del episodes[count:]
    series.episode_count = count


def _series_assets(series: Series) -> list[tuple[str, str]]:
    """Every ``(asset_ref, folder)`` reachable from ``series``."""
    refs = []
    if series.thumbnail:
        refs.append((series.thumbnail, AssetKind.SERIES_THUMBNAIL.folder))
    for episode in series.episodes:
        if episode.thumbnail:
            refs.append((episode.thumbnail, AssetKind.THUMBNAIL.folder))
        if episode.music:
            refs.append((episode.music, AssetKind.MUSIC.folder))
        for item in episode.media:
            if item.asset_ref:
                refs.append((item.asset_ref, AssetKind.MEDIA.folder))
    return refs


class SeriesRepository:
    def __init__(self, coordinator: LifecycleCoordinator):
        self.coordinator = coordinator

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def list_series(self, doc: ShowDocument) -> list[Series]:
        return list(doc.series)

    def get_series(self, doc: ShowDocument, series_id: str) -> Series:
        series = doc.find(series_id)
        if series is None:
            raise NotFoundError("Series not found")
        return series

    def get_episode(self, doc: ShowDocument, series_id: str, episode_index: int) -> Episode:
        series = self.get_series(doc, series_id)
        if (
            isinstance(episode_index, bool)
            or not isinstance(episode_index, int)
            or not 0 <= episode_index < len(series.episodes)
        ):
            raise InvalidIndexError("Invalid episode index")
        return series.episodes[episode_index]

    # ------------------------------------------------------------------
    # Series
    # ------------------------------------------------------------------

    def create_series(
        self,
        doc: ShowDocument,
        title: str | None = None,
        description: str | None = None,
        episode_count: int | None = None,
    ) -> tuple[ShowDocument, Series]:
        count = 1 if episode_count is None else _require_count(episode_count)
        series = Series(
            title=_require_text("title", title) if title else "Untitled Series",
            description=_require_text("description", description) if description else "",
        )
        # a zero count falls back to one episode
        _reconcile_episodes(series, count or 1)

        doc = _working_copy(doc)
        doc.series.append(series)
        logger.info(
            "Created series %s '%s' with %d episode(s)",
            series.id,
            series.title,
            series.episode_count,
        )
        return doc, series

    def update_series(
        self,
        doc: ShowDocument,
        series_id: str,
        *,
        title: Any = UNSET,
        description: Any = UNSET,
        episode_count: Any = UNSET,
        episodes: Any = UNSET,
    ) -> tuple[ShowDocument, Series]:
        """Partial update; only supplied fields change.

        A supplied ``episodes`` list replaces the current one before the
        count is reconciled, so padding continues from the supplied list.
        """
        doc = _working_copy(doc)
        series = self.get_series(doc, series_id)

        if title is not UNSET:
            series.title = _require_text("title", title)
        if description is not UNSET:
            series.description = _require_text("description", description)
        if episodes is not UNSET:
            series.episodes = _require_episodes(episodes)

        if episode_count is not UNSET:
            _reconcile_episodes(series, _require_count(episode_count))
        elif episodes is not UNSET:
            series.episode_count = len(series.episodes)

        return doc, series

    def delete_series(self, doc: ShowDocument, series_id: str) -> tuple[ShowDocument, int]:
        """Remove a series after discarding every asset it owns.

        Returns how many assets the store confirmed as deleted. The series
        is removed regardless.
        """
        doc = _working_copy(doc)
        series = self.get_series(doc, series_id)

        refs = _series_assets(series)
        deleted = self.coordinator.discard_all(refs)
        if deleted < len(refs):
            logger.warning(
                "Series %s: %d of %d asset(s) could not be deleted",
                series_id,
                len(refs) - deleted,
                len(refs),
            )

        doc.series = [s for s in doc.series if s.id != series_id]
        logger.info("Deleted series %s (%d asset(s) removed)", series_id, deleted)
        return doc, deleted

    def set_series_thumbnail(
        self, doc: ShowDocument, series_id: str, asset_ref: str
    ) -> tuple[ShowDocument, Series]:
        doc = _working_copy(doc)
        series = self.get_series(doc, series_id)
        series.thumbnail = self.coordinator.replace(
            series.thumbnail, asset_ref, folder=AssetKind.SERIES_THUMBNAIL.folder
        )
        return doc, series

    # ------------------------------------------------------------------
    # Episode assets
    # ------------------------------------------------------------------

    def set_episode_thumbnail(
        self, doc: ShowDocument, series_id: str, episode_index: int, asset_ref: str
    ) -> tuple[ShowDocument, Episode]:
        doc = _working_copy(doc)
        episode = self.get_episode(doc, series_id, episode_index)
        episode.thumbnail = self.coordinator.replace(
            episode.thumbnail, asset_ref, folder=AssetKind.THUMBNAIL.folder
        )
        return doc, episode

    def set_episode_music(
        self,
        doc: ShowDocument,
        series_id: str,
        episode_index: int,
        asset_ref: str,
        original_name: str,
    ) -> tuple[ShowDocument, Episode]:
        doc = _working_copy(doc)
        episode = self.get_episode(doc, series_id, episode_index)
        episode.music = self.coordinator.replace(
            episode.music, asset_ref, folder=AssetKind.MUSIC.folder
        )
        episode.music_original_name = original_name
        return doc, episode

    def delete_episode_music(
        self, doc: ShowDocument, series_id: str, episode_index: int
    ) -> tuple[ShowDocument, bool]:
        """Clear the episode's music. Returns False when there was none."""
        doc = _working_copy(doc)
        episode = self.get_episode(doc, series_id, episode_index)
        if not episode.music:
            return doc, False
        self.coordinator.discard(episode.music, folder=AssetKind.MUSIC.folder)
        episode.music = None
        episode.music_original_name = None
        return doc, True

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def add_media(
        self,
        doc: ShowDocument,
        series_id: str,
        episode_index: int,
        items: Iterable[NewMedia],
    ) -> tuple[ShowDocument, list[MediaItem]]:
        doc = _working_copy(doc)
        episode = self.get_episode(doc, series_id, episode_index)
        added = [
            MediaItem(
                filename=item.key or item.asset_ref,
                original_name=item.original_name,
                type=classify_media(item.original_name),
                url=item.asset_ref,
            )
            for item in items
        ]
        episode.media.extend(added)
        return doc, added

    def delete_media(
        self, doc: ShowDocument, series_id: str, episode_index: int, media_id: str
    ) -> tuple[ShowDocument, MediaItem]:
        doc = _working_copy(doc)
        episode = self.get_episode(doc, series_id, episode_index)
        position = next((i for i, m in enumerate(episode.media) if m.id == media_id), None)
        if position is None:
            raise NotFoundError("Media not found")

        item = episode.media[position]
        self.coordinator.discard(item.asset_ref, folder=AssetKind.MEDIA.folder)
        del episode.media[position]
        return doc, item

    def reorder_media(
        self,
        doc: ShowDocument,
        series_id: str,
        episode_index: int,
        ordered_ids: Sequence[str],
    ) -> tuple[ShowDocument, list[MediaItem]]:
        """Listed ids first in the given order, unlisted items after.

        Unknown and repeated ids are skipped. The media count never changes
        and no assets are touched.
        """
        if not isinstance(ordered_ids, list):
            raise InvalidInputError("mediaIds must be an array")

        doc = _working_copy(doc)
        episode = self.get_episode(doc, series_id, episode_index)

        remaining = list(episode.media)
        reordered = []
        for media_id in ordered_ids:
            for position, item in enumerate(remaining):
                if item.id == media_id:
                    reordered.append(remaining.pop(position))
                    break
        reordered.extend(remaining)

        episode.media = reordered
        return doc, reordered

    # ------------------------------------------------------------------
    # Legacy single-show surface
    # ------------------------------------------------------------------

    def save_legacy_show(
        self,
        doc: ShowDocument,
        show_title: str | None = None,
        episode_count: int | None = None,
        episodes: list | None = None,
    ) -> tuple[ShowDocument, Series]:
        """Create or update the first series from a single-show payload.

        Falsy values keep the current ones, as old clients send partial data.
        """
        doc = _working_copy(doc)
        if not doc.series:
            series = Series(title=DEFAULT_SHOW_TITLE, description="", episode_count=0)
            doc.series.append(series)
            current_count = 1
        else:
            series = doc.series[0]
            current_count = series.episode_count

        if show_title:
            series.title = _require_text("showTitle", show_title)
        if episodes:
            series.episodes = _require_episodes(episodes)
        count = _require_count(episode_count) if episode_count else current_count
        _reconcile_episodes(series, count)
        return doc, series
