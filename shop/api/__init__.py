"""HTTP API for shop administration."""
