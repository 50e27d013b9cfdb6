"""Action connectors for Slack, Gmail and Google Sheets."""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any, Optional

import httpx

from ..context import ExecutionContext
from ..contracts import NodeDefinition
from ..errors import HandlerError

logger = logging.getLogger(__name__)

SLACK_TIMEOUT = 10.0


async def _post_slack_webhook(
    url: str, body: dict, client: Optional[httpx.AsyncClient] = None
) -> None:
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=SLACK_TIMEOUT)
    try:
        response = await client.post(url, json=body)
    finally:
        if owns_client:
            await client.aclose()
    if response.status_code >= 500 or response.status_code == 429:
        raise HandlerError(
            f"Slack webhook returned {response.status_code}", retryable=True
        )
    if response.status_code >= 400:
        raise HandlerError(
            f"Slack rejected message: {response.status_code} {response.text}"
        )


async def slack_send_message(node: NodeDefinition, context: ExecutionContext) -> dict:
    config = context.render(node.config)
    channel = config.get("channelId") or "general"
    text = config.get("messageTemplate") or config.get("text") or ""
    if not isinstance(text, str):
        text = str(text)

    webhook_url = config.get("webhookUrl")
    if webhook_url:
        await _post_slack_webhook(webhook_url, {"channel": channel, "text": text})
        logger.info(f"Posted Slack message to {channel} via webhook")
    else:
        logger.info(f"Simulated Slack message to {channel}")
    return {"sent": True, "channel": channel, "text": text, "ts": int(time.time() * 1000)}


def gmail_send_email(node: NodeDefinition, context: ExecutionContext) -> dict:
    config = context.render(node.config)
    to = config.get("to")
    if not to:
        raise HandlerError("gmail-send-email requires a 'to' address")
    logger.info(f"Simulated email to {to}")
    return {
        "sent": True,
        "messageId": f"msg-{uuid.uuid4().hex[:12]}",
        "to": to,
        "subject": config.get("subject", ""),
    }


async def sheets_update_row(node: NodeDefinition, context: ExecutionContext) -> dict[str, Any]:
    config = context.render(node.config)
    spreadsheet_id = config.get("spreadsheetId")
    if not spreadsheet_id:
        raise HandlerError("sheets-update-row requires a 'spreadsheetId'")
    values = config.get("values", [])
    logger.info(f"Simulated update of row {config.get('row')} in {spreadsheet_id}")
    return {
        "updated": True,
        "spreadsheetId": spreadsheet_id,
        "row": config.get("row"),
        "values": values,
    }
