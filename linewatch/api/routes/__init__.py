"""API routes for LineWatch."""
