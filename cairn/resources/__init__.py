"""Bundled layouts and dev server files."""
