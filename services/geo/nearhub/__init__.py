"""Nearest-hub resolution: geocoding, distance estimates, hub ranking."""
