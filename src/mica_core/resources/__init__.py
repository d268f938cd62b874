"""Packaged data files (alignment presets)."""
