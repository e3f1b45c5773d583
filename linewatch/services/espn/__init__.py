"""ESPN NBA client module."""

from linewatch.services.espn.client import ESPNClient, ESPNError, PlayerGameLine

__all__ = ["ESPNClient", "ESPNError", "PlayerGameLine"]
