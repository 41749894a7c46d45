"""Flask web API."""
