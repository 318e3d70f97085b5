"""HTTP API for card checkout."""
