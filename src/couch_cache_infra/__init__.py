"""Infrastructure for couch-cache: store adapters, repository, logging."""
