"""Asset storage backends."""
