"""HTTP API for LineWatch."""
