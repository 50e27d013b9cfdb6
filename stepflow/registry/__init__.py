"""Connector registry: maps connector types to handler callables."""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

from ..contracts import NodeRole
from ..errors import DuplicateConnectorError, UnknownConnectorError
from .models import ConnectorDescriptor, Handler

logger = logging.getLogger(__name__)


class ConnectorRegistry:
    """Keyed lookup of connector handlers.

    Built once at composition time and only read during execution, so a
    single instance can be shared by concurrent runs.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, Handler] = {}
        self._descriptors: Dict[str, ConnectorDescriptor] = {}

    def register(
        self,
        connector_type: str,
        handler: Handler,
        descriptor: Optional[ConnectorDescriptor] = None,
    ) -> None:
        """Register ``handler`` for ``connector_type``.

        Raises:
            DuplicateConnectorError: If the type is already registered.
        """
        if connector_type in self._handlers:
            raise DuplicateConnectorError(connector_type)
        self._handlers[connector_type] = handler
        if descriptor is not None:
            self._descriptors[connector_type] = descriptor
        logger.debug(f"Registered connector {connector_type}")

    def connector(
        self,
        connector_type: str,
        role: NodeRole = NodeRole.ACTION,
        label: Optional[str] = None,
        **metadata,
    ):
        """Decorator form of :meth:`register`."""

        def decorator(handler: Handler) -> Handler:
            descriptor = ConnectorDescriptor(
                connector_type=connector_type,
                role=role,
                label=label or connector_type,
                **metadata,
            )
            self.register(connector_type, handler, descriptor)
            return handler

        return decorator

    def resolve(self, connector_type: str) -> Handler:
        try:
            return self._handlers[connector_type]
        except KeyError:
            raise UnknownConnectorError(connector_type) from None

    def __contains__(self, connector_type: str) -> bool:
        return connector_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def connector_types(self) -> List[str]:
        return sorted(self._handlers)

    def descriptors(self) -> List[ConnectorDescriptor]:
        return [self._descriptors[k] for k in sorted(self._descriptors)]


def default_registry(retry_config=None) -> ConnectorRegistry:
    """Registry pre-populated with the built-in connectors."""
    from ..connectors import register_builtin_connectors

    registry = ConnectorRegistry()
    register_builtin_connectors(registry, retry_config)
    return registry


__all__ = [
    "ConnectorDescriptor",
    "ConnectorRegistry",
    "Handler",
    "default_registry",
]
