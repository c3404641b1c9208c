"""Web layer for the practice manager API."""
