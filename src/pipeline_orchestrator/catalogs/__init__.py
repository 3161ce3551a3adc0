"""Bundled pipeline catalogs."""
