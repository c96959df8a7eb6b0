"""Core types for couch-cache: models, key codec, TTL policy, store interface."""
