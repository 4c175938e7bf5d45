"""
Abstract interfaces for the engine components.

Schema discovery is injected everywhere a SchemaMap is needed, so tests and
alternative backends can supply a fixed map without a live platform.
"""

from __future__ import annotations

import abc
from typing import Protocol, runtime_checkable

from approval_engine.domain.models import SchemaMap


@runtime_checkable
class SchemaDiscoverer(Protocol):
    """
    Produces the SchemaMap of the reviewable object.

    Implementations must not raise when no candidate object exists; they
    return a map whose `object_name` is None instead. Transport failures
    propagate.
    """

    def discover(self) -> SchemaMap:
        ...


class StaticSchemaDiscoverer:
    """Discoverer returning a fixed map (pre-configured deployments, tests)."""

    def __init__(self, schema: SchemaMap) -> None:
        self.schema = schema

    def discover(self) -> SchemaMap:
        return self.schema


class AbstractSchemaDiscoverer(abc.ABC):
    """
    Optional ABC helper for class-based discoverers.
    """

    @abc.abstractmethod
    def discover(self) -> SchemaMap:
        raise NotImplementedError


__all__ = ["SchemaDiscoverer", "StaticSchemaDiscoverer", "AbstractSchemaDiscoverer"]
