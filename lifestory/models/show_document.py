"""Pydantic models for the persisted show document.

The document is stored as camelCase JSON (``episodeCount``, ``createdAt``...)
so every multi-word field carries an alias. Unknown keys are kept so that a
load/save cycle never drops data written by an older or newer client.
"""

import uuid
from datetime import UTC, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from lifestory.models.media_types import MediaType

DEFAULT_SHOW_TITLE = "The Story of My Life"


def new_id() -> str:
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class DocumentModel(BaseModel):
    """Base for all document nodes."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_json(self) -> dict:
        """JSON-safe dict using the stored (camelCase) key names."""
        return self.model_dump(mode="json", by_alias=True)


class MediaItem(DocumentModel):
    """One uploaded image or video attached to an episode."""

    id: str = Field(default_factory=new_id)
    filename: Optional[str] = Field(None, description="Storage key")
    original_name: str = Field("", alias="originalName")
    type: MediaType = MediaType.IMAGE
    url: Optional[str] = Field(None, description="Asset reference")

    @property
    def asset_ref(self) -> Optional[str]:
        return self.url or self.filename


class Episode(DocumentModel):
    """Positional unit inside a series. Has no id of its own."""

    title: str = ""
    thumbnail: Optional[str] = None
    music: Optional[str] = None
    music_original_name: Optional[str] = Field(None, alias="musicOriginalName")
    media: list[MediaItem] = Field(default_factory=list)

    @classmethod
    def numbered(cls, number: int) -> "Episode":
        """Empty episode titled ``Episode {number}`` (1-based)."""
        return cls(title=f"Episode {number}")

    def asset_refs(self) -> list[str]:
        refs = [ref for ref in (self.thumbnail, self.music) if ref]
        refs.extend(item.asset_ref for item in self.media if item.asset_ref)
        return refs


class Series(DocumentModel):
    """Top-level documentary entity."""

    id: str = Field(default_factory=new_id)
    title: str = "Untitled Series"
    description: str = ""
    thumbnail: Optional[str] = None
    created_at: str = Field(default_factory=utc_timestamp, alias="createdAt")
    episode_count: int = Field(1, ge=0, alias="episodeCount")
    episodes: list[Episode] = Field(default_factory=list)


class ShowDocument(DocumentModel):
    """Root of the persisted JSON document."""

    series: list[Series] = Field(default_factory=list)

    def find(self, series_id: str) -> Optional[Series]:
        return next((s for s in self.series if s.id == series_id), None)
