"""Data layer package."""
