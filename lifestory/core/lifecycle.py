"""Sequencing of asset deletion alongside document mutation.

The coordinator never decides whether a document change happens. Callers
always apply the new reference; deleting the old asset is attempted
independently and a failure only leaves an orphaned file behind.
"""

import logging
from collections.abc import Iterable

from lifestory.core.errors import AssetOperationError
from lifestory.services.asset_store import AssetStore

logger = logging.getLogger(__name__)


class LifecycleCoordinator:
    def __init__(self, store: AssetStore):
        self.store = store

    def replace(self, old_ref: str | None, new_ref: str, folder: str | None = None) -> str:
        """Return ``new_ref`` for the caller to apply, discarding ``old_ref``."""
        if old_ref and old_ref != new_ref:
            self.discard(old_ref, folder=folder)
        return new_ref

    def discard(self, ref: str | None, folder: str | None = None) -> bool:
        """Best-effort delete of the asset behind ``ref``.

        ``folder`` resolves legacy documents that stored a bare filename
        (``abc.png``) instead of a key or URL.

        Returns True only when the store confirmed the removal.
        """
        if not ref:
            return False
        try:
            key = self._resolve(ref, folder)
        except Exception as e:
            logger.warning("Could not resolve asset reference %r: %s", ref, e)
            return False
        if key is None:
            logger.info("Skipping delete of unrecognised asset reference: %s", ref)
            return False
        try:
            self._delete(key)
        except AssetOperationError as e:
            logger.warning("Asset left orphaned: %s", e)
            return False
        return True

    def discard_all(self, refs: Iterable[tuple[str, str | None]]) -> int:
        """Discard each ``(ref, folder)`` pair; returns how many succeeded."""
        return sum(1 for ref, folder in refs if self.discard(ref, folder=folder))

    def _resolve(self, ref: str, folder: str | None) -> str | None:
        key = self.store.key_from_reference(ref)
        if key is None and folder and "/" not in ref:
            key = self.store.key_from_reference(f"{folder}/{ref}")
        return key

    def _delete(self, key: str) -> None:
        try:
            removed = self.store.delete(key)
        except Exception as exc:
            raise AssetOperationError(f"delete of {key} raised: {exc}") from exc
        if not removed:
            raise AssetOperationError(f"store could not delete {key}")
