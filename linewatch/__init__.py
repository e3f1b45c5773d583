"""LineWatch: sports betting line movement and player prop analytics."""

__version__ = "0.1.0"
