"""Command-line interface for couch-cache."""
