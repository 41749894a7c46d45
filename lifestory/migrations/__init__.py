"""Show document migration system for lifestory.

Migrations operate on the raw decoded JSON (a plain dict) before it is
validated into a ``ShowDocument``. Each one decides from the document's shape
whether it still applies, so running the registry twice is a no-op.
"""

import logging
from abc import ABC, abstractmethod

from lifestory.models.show_document import new_id, utc_timestamp

logger = logging.getLogger(__name__)

LEGACY_DESCRIPTION = "A personal documentary"


class Migration(ABC):
    """Base class for document migrations."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Unique version identifier for this migration."""
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        """Human-readable description of this migration."""
        pass

    @abstractmethod
    def applies_to(self, raw: dict) -> bool:
        """Whether ``raw`` still needs this migration."""
        pass

    @abstractmethod
    def up(self, raw: dict) -> dict:
        """Return the migrated document. ``raw`` is not modified."""
        pass


class LegacySingleShowMigration(Migration):
    """Migration v1: wrap the single-show document into a series list."""

    @property
    def version(self) -> str:
        return "001_multi_series"

    @property
    def description(self) -> str:
        return "Convert {showTitle, episodeCount, episodes} into {series: [...]}"

    def applies_to(self, raw: dict) -> bool:
        return raw.get("series") is None and bool(raw.get("showTitle"))

    def up(self, raw: dict) -> dict:
        logger.info(f"Running migration: {self.version}")
        series = {
            "id": new_id(),
            "title": raw["showTitle"],
            "description": LEGACY_DESCRIPTION,
            "thumbnail": None,
            "createdAt": utc_timestamp(),
            "episodeCount": raw.get("episodeCount") or 1,
            "episodes": raw.get("episodes") or [],
        }
        logger.info(f"✓ Migrated show '{raw['showTitle']}' into series {series['id']}")
        return {"series": [series]}


# Registry of all available migrations
MIGRATIONS = [
    LegacySingleShowMigration(),
]


def get_pending_migrations(raw: dict) -> list[Migration]:
    """Get list of migrations that still apply to ``raw``."""
    return [migration for migration in MIGRATIONS if migration.applies_to(raw)]


def run_migrations(raw: dict, dry_run: bool = False) -> tuple[dict, list[str]]:
    """Run all pending migrations in registry order.

    Returns the (possibly) migrated document and the applied versions.
    """
    applied = []
    for migration in MIGRATIONS:
        if not migration.applies_to(raw):
            continue
        if dry_run:
            logger.info(f"[DRY RUN] Would apply: {migration.version} - {migration.description}")
            continue
        try:
            raw = migration.up(raw)
        except Exception as e:
            logger.error(f"Migration {migration.version} failed: {e}")
            raise
        applied.append(migration.version)
    return raw, applied
