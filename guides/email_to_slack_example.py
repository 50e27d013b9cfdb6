"""Example showing how to build and run an email-to-Slack workflow in memory."""

import asyncio
import json

from stepflow import WorkflowRunner, default_registry, link_sequential
from stepflow.contracts import NodeDefinition, NodeRole, WorkflowGraph, WorkflowStatus
from stepflow.persistence import InMemoryWorkflowRepository


async def main():
    repo = InMemoryWorkflowRepository()

    nodes = link_sequential(
        [
            NodeDefinition(
                id="T1",
                role=NodeRole.TRIGGER,
                connector_type="gmail-new-email",
                config={"senderFilter": "boss@co"},
            ),
            NodeDefinition(
                id="A1",
                role=NodeRole.ACTION,
                connector_type="slack-send-message",
                config={
                    "channelId": "alerts",
                    "messageTemplate": "New mail from {{trigger.sender}}: {{trigger.subject}}",
                },
            ),
        ]
    )
    workflow = await repo.save_workflow(
        WorkflowGraph(name="Email to Slack", status=WorkflowStatus.ACTIVE, nodes=nodes)
    )

    runner = WorkflowRunner(repo, default_registry())
    outcome = await runner.run(workflow.id, {"sender": "boss@co", "subject": "Q3 numbers"})
    print(f"Run succeeded: {outcome.success}")

    record = await repo.get_execution_record(outcome.execution_id)
    print(json.dumps(record.result_data, indent=2, default=str))


if __name__ == "__main__":
    asyncio.run(main())
