"""Upload kinds, storage folders and the extension classification tables."""

from enum import Enum
from pathlib import Path

IMAGE_EXTENSIONS = frozenset({"jpeg", "jpg", "png", "gif", "webp"})
VIDEO_EXTENSIONS = frozenset({"mp4", "webm", "mov", "avi", "mkv"})
AUDIO_EXTENSIONS = frozenset({"mp3", "wav", "ogg", "aac", "m4a", "flac"})


class MediaType(str, Enum):
    """Type of an episode media item, fixed at ingestion."""

    IMAGE = "image"
    VIDEO = "video"


class AssetKind(str, Enum):
    """Kind of uploaded asset. The value is the storage folder."""

    SERIES_THUMBNAIL = "series-thumbnails"
    THUMBNAIL = "thumbnails"
    MEDIA = "media"
    MUSIC = "music"

    @property
    def folder(self) -> str:
        return self.value


ALLOWED_EXTENSIONS: dict[AssetKind, frozenset[str]] = {
    AssetKind.SERIES_THUMBNAIL: IMAGE_EXTENSIONS,
    AssetKind.THUMBNAIL: IMAGE_EXTENSIONS,
    AssetKind.MEDIA: IMAGE_EXTENSIONS | VIDEO_EXTENSIONS,
    AssetKind.MUSIC: AUDIO_EXTENSIONS,
}


def extension_of(filename: str) -> str:
    """Lower-case extension without the dot ('' when there is none)."""
    return Path(filename or "").suffix.lower().lstrip(".")


def is_allowed(kind: AssetKind, filename: str) -> bool:
    return extension_of(filename) in ALLOWED_EXTENSIONS[kind]


def classify_media(filename: str) -> MediaType:
    """Video for the video extensions, image for everything else."""
    if extension_of(filename) in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return MediaType.IMAGE
