"""Configuration for couch-cache."""
