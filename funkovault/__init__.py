"""Collectible collection server with file-backed per-user storage."""
