"""Load and save the single show document on disk."""

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from lifestory.migrations import run_migrations
from lifestory.models.show_document import DEFAULT_SHOW_TITLE, Episode, Series, ShowDocument

logger = logging.getLogger(__name__)


class DocumentStore:
    """Owns the JSON file at ``path`` and the legacy-format upgrade.

    ``load`` never raises: a missing, unreadable or malformed file yields an
    empty document. A legacy document is migrated and written back on the
    first load that sees it.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read_raw(self) -> dict | None:
        """Decoded JSON object, or None when missing or not a JSON object."""
        try:
            text = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read %s: %s", self.path, e)
            return None
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("Show data at %s is not valid JSON: %s", self.path, e)
            return None
        if not isinstance(raw, dict):
            logger.warning("Show data at %s is not a JSON object", self.path)
            return None
        return raw

    def load(self) -> ShowDocument:
        raw = self.read_raw()
        if raw is None:
            return ShowDocument()

        try:
            raw, applied = run_migrations(raw)
            doc = ShowDocument.model_validate(raw)
        except (ValidationError, KeyError, TypeError, ValueError) as e:
            logger.warning("Show data at %s could not be parsed: %s", self.path, e)
            return ShowDocument()

        if applied:
            logger.info("Applied migrations %s; saving upgraded show data", ", ".join(applied))
            try:
                self.save(doc)
            except OSError as e:
                logger.warning("Could not save upgraded show data to %s: %s", self.path, e)
        return doc

    def save(self, doc: ShowDocument) -> None:
        """Replace the file with ``doc`` in one rename."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps(doc.to_json(), indent=2, ensure_ascii=False)
        fd, tmp_name = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def initialize(self) -> bool:
        """Write the default show when no file exists. Returns True if written."""
        if self.exists():
            return False
        series = Series(
            title=DEFAULT_SHOW_TITLE,
            description="",
            episode_count=1,
            episodes=[Episode.numbered(1)],
        )
        self.save(ShowDocument(series=[series]))
        logger.info("Created default show data file at %s", self.path)
        return True
