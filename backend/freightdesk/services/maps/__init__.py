"""Mapping provider integrations: geocoding and distance."""
