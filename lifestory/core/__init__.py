"""Document consistency and asset lifecycle."""
