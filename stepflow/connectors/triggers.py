"""Trigger connectors.

Triggers fire outside the engine (webhooks, mailbox watchers, schedulers);
inside a run they pass the trigger payload through to downstream steps.
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from ..context import ExecutionContext
from ..contracts import NodeDefinition, utcnow

logger = logging.getLogger(__name__)


async def passthrough_trigger(node: NodeDefinition, context: ExecutionContext) -> Any:
    logger.info(f"Trigger {node.connector_type} fired ({node.id})")
    return copy.deepcopy(context.trigger_data)


async def schedule_cron(node: NodeDefinition, context: ExecutionContext) -> dict:
    logger.info(f"Cron schedule fired ({node.id})")
    return {
        "time": utcnow().isoformat(),
        "cronExpression": node.config.get("cronExpression"),
        "timezone": node.config.get("timezone", "UTC"),
    }
