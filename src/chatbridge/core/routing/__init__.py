"""Routing subsystem — model reference resolution."""

from chatbridge.core.routing.resolver import ModelResolver, ResolvedModel

__all__ = [
    "ModelResolver",
    "ResolvedModel",
]
