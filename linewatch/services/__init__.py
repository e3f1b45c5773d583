"""Services for LineWatch."""
