"""Pydantic models describing registered connectors."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

from ..contracts import NodeRole

# (node, context) -> output; may be sync or async.
Handler = Callable[[Any, Any], Union[Any, Awaitable[Any]]]


class ConnectorDescriptor(BaseModel):
    """Metadata describing a connector for listings and editors."""

    connector_type: str
    role: NodeRole
    label: str
    provider: Literal["google", "slack", "system", "custom"] = "custom"
    description: Optional[str] = None
    config_keys: list[str] = Field(default_factory=list)

    @field_validator("connector_type")
    @classmethod
    def _ensure_connector_type(cls, v: str) -> str:
        if not v:
            raise ValueError("connector_type must be a non-empty string")
        return v
