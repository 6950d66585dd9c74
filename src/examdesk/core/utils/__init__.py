"""Shared helpers: path lens, wire serialization and timestamps."""
