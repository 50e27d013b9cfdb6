import pytest
from pydantic import ValidationError

from stepflow.contracts import NodeRole
from stepflow.errors import DuplicateConnectorError, UnknownConnectorError
from stepflow.registry import ConnectorRegistry
from stepflow.registry.models import ConnectorDescriptor


def test_register_and_resolve():
    registry = ConnectorRegistry()

    def handler(node, ctx):
        return "ok"

    registry.register("echo", handler)
    assert registry.resolve("echo") is handler
    assert "echo" in registry
    assert len(registry) == 1


def test_duplicate_registration_raises():
    registry = ConnectorRegistry()
    registry.register("echo", lambda n, c: None)
    with pytest.raises(DuplicateConnectorError):
        registry.register("echo", lambda n, c: None)


def test_unknown_connector_raises():
    with pytest.raises(UnknownConnectorError, match="Unknown connector type: nope"):
        ConnectorRegistry().resolve("nope")


def test_decorator_registers_descriptor():
    registry = ConnectorRegistry()

    @registry.connector("webhook-in", role=NodeRole.TRIGGER, label="Webhook")
    async def webhook(node, ctx):
        return ctx.trigger_data

    assert registry.resolve("webhook-in") is webhook
    [descriptor] = registry.descriptors()
    assert descriptor.label == "Webhook"
    assert descriptor.role == NodeRole.TRIGGER
    assert descriptor.provider == "custom"


def test_descriptor_validation():
    with pytest.raises(ValidationError):
        ConnectorDescriptor(connector_type="", role=NodeRole.ACTION, label="x")
    with pytest.raises(ValidationError):
        ConnectorDescriptor(
            connector_type="x", role=NodeRole.ACTION, label="x", provider="dropbox"
        )
