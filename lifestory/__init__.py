"""lifestory - series, episodes and media for a personal documentary app."""

__version__ = "0.1.0"
