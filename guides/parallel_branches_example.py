"""Example of a fan-out/fan-in workflow with a custom connector."""

import asyncio

from stepflow import GraphExecutor, default_registry
from stepflow.context import ExecutionContext
from stepflow.contracts import NodeDefinition, NodeRole


registry = default_registry()


@registry.connector("summarize", label="Summarize results")
def summarize(node, context):
    # Join node: sees every upstream step result
    return {k: sorted(v) if isinstance(v, dict) else v for k, v in context.step_results.items()}


async def main():
    nodes = [
        NodeDefinition(id="T1", role=NodeRole.TRIGGER, connector_type="sheets-new-row"),
        NodeDefinition(
            id="mail",
            role=NodeRole.ACTION,
            connector_type="gmail-send-email",
            config={"to": "{{trigger.owner}}", "subject": "Row added"},
            depends_on=["T1"],
        ),
        NodeDefinition(
            id="slack",
            role=NodeRole.ACTION,
            connector_type="slack-send-message",
            config={"messageTemplate": "Row {{trigger.row}} added"},
            depends_on=["T1"],
        ),
        NodeDefinition(
            id="report",
            role=NodeRole.ACTION,
            connector_type="summarize",
            depends_on=["mail", "slack"],
        ),
    ]

    context = ExecutionContext("demo", "demo-run", {"owner": "ops@co", "row": 7})
    result = await GraphExecutor(registry, max_concurrency=2).execute(nodes, context)
    print(f"{result.state.value}: {result.step_results['report']}")


if __name__ == "__main__":
    asyncio.run(main())
