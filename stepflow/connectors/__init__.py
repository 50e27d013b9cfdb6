"""Built-in connectors and their registration."""

from __future__ import annotations

from ..config import RetryConfig
from ..contracts import NodeRole
from ..registry import ConnectorRegistry
from ..registry.models import ConnectorDescriptor
from ..utils.retry import retry
from .actions import gmail_send_email, sheets_update_row, slack_send_message
from .triggers import passthrough_trigger, schedule_cron

# Connectors that talk to external services and retry transient failures.
RETRYING_CONNECTORS = {"slack-send-message"}

BUILTIN_CONNECTORS = [
    (
        passthrough_trigger,
        ConnectorDescriptor(
            connector_type="gmail-new-email",
            role=NodeRole.TRIGGER,
            label="New Email",
            provider="google",
            description="Triggers when a new email matches criteria",
            config_keys=["subjectFilter", "senderFilter"],
        ),
    ),
    (
        schedule_cron,
        ConnectorDescriptor(
            connector_type="schedule-cron",
            role=NodeRole.TRIGGER,
            label="Scheduled Time",
            provider="system",
            description="Triggers at a specific time or interval",
            config_keys=["cronExpression", "timezone"],
        ),
    ),
    (
        passthrough_trigger,
        ConnectorDescriptor(
            connector_type="sheets-new-row",
            role=NodeRole.TRIGGER,
            label="New Row",
            provider="google",
            description="Triggers when a new row is added",
        ),
    ),
    (
        slack_send_message,
        ConnectorDescriptor(
            connector_type="slack-send-message",
            role=NodeRole.ACTION,
            label="Send Slack Message",
            provider="slack",
            description="Sends a message to a channel or user",
            config_keys=["channelId", "messageTemplate", "webhookUrl"],
        ),
    ),
    (
        gmail_send_email,
        ConnectorDescriptor(
            connector_type="gmail-send-email",
            role=NodeRole.ACTION,
            label="Send Email",
            provider="google",
            description="Sends an email via Gmail",
            config_keys=["to", "subject", "body"],
        ),
    ),
    (
        sheets_update_row,
        ConnectorDescriptor(
            connector_type="sheets-update-row",
            role=NodeRole.ACTION,
            label="Update Row",
            provider="google",
            description="Updates a specific row in Sheets",
            config_keys=["spreadsheetId", "row", "values"],
        ),
    ),
]


def register_builtin_connectors(
    registry: ConnectorRegistry, retry_config: RetryConfig | None = None
) -> ConnectorRegistry:
    retry_config = retry_config or RetryConfig()
    for handler, descriptor in BUILTIN_CONNECTORS:
        if descriptor.connector_type in RETRYING_CONNECTORS:
            handler = retry(
                attempts=retry_config.attempts,
                base=retry_config.base,
                jitter=retry_config.jitter,
            )(handler)
        registry.register(descriptor.connector_type, handler, descriptor)
    return registry


__all__ = ["BUILTIN_CONNECTORS", "RETRYING_CONNECTORS", "register_builtin_connectors"]
