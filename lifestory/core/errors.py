"""Error taxonomy shared by the repository, the library and the web layer."""


class LifestoryError(Exception):
    """Base class for all lifestory errors."""


class NotFoundError(LifestoryError):
    """A series, episode or media item does not exist."""


class InvalidIndexError(LifestoryError):
    """Episode index outside the series' current episodes."""


class InvalidInputError(LifestoryError):
    """Request payload has the wrong shape or is missing a file."""


class AssetOperationError(LifestoryError):
    """An AssetStore put or delete failed."""
