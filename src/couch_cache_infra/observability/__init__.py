"""Observability: structured logging."""

from couch_cache_infra.observability.logging import (
    command_context,
    configure_logging,
    operation_context,
)

__all__ = [
    "command_context",
    "configure_logging",
    "operation_context",
]
