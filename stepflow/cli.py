"""Command line interface for managing and running stepflow workflows."""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
import yaml
from pydantic import ValidationError

from stepflow import WorkflowRunner, get_repository, link_sequential
from stepflow.config import load_config
from stepflow.contracts import WorkflowGraph, WorkflowStatus
from stepflow.registry import default_registry

app = typer.Typer(help="CLI for stepflow workflows")

# Command groups
workflow_app = typer.Typer(help="Commands for managing workflows")
execution_app = typer.Typer(help="Commands for inspecting executions")
connector_app = typer.Typer(help="Commands for listing connectors")

app.add_typer(workflow_app, name="workflow")
app.add_typer(execution_app, name="execution")
app.add_typer(connector_app, name="connector")


@app.callback()
def main() -> None:
    """Stepflow CLI entry point."""
    config = load_config()
    logging.basicConfig(level=getattr(logging, config.log_level))


@workflow_app.command("list")
def workflow_list() -> None:
    """
    List all workflows with their status.

    Example:
        stepflow workflow list
        # Output: 0b7c...    ACTIVE    Email to Slack    (2 nodes)
    """
    repo = get_repository()
    workflows = asyncio.run(repo.list_workflows())
    if not workflows:
        typer.echo("No workflows found")
        return
    for wf in workflows:
        typer.echo(f"{wf.id}\t{wf.status.value}\t{wf.name}\t({len(wf.nodes)} nodes)")


@workflow_app.command("show")
def workflow_show(workflow_id: str) -> None:
    """Show a workflow and its nodes with their dependencies."""
    repo = get_repository()
    wf = asyncio.run(repo.get_workflow(workflow_id))
    if wf is None:
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Workflow {wf.id}: {wf.name} [{wf.status.value}]")
    for node in wf.nodes:
        deps = ", ".join(node.depends_on) or "-"
        typer.echo(f"- {node.id} {node.role.value} {node.connector_type} (after: {deps})")


@workflow_app.command("import")
def workflow_import(
    path: Path,
    chain: bool = typer.Option(
        False, help="Link nodes without dependencies to the previous node in the file"
    ),
    status: Optional[WorkflowStatus] = typer.Option(None, help="Override workflow status"),
) -> None:
    """
    Import a workflow from a JSON or YAML document.

    The document holds ``name``, ``status`` and ``nodes`` (or is a bare node
    list). Node keys follow the editor format: ``id``, ``role``,
    ``connectorType``, ``config``, ``dependsOn``.

    Example:
        stepflow workflow import ./email_to_slack.yaml --chain
    """
    if not path.exists():
        typer.secho("Specified path does not exist", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    data = yaml.safe_load(path.read_text()) or {}
    if isinstance(data, list):
        data = {"nodes": data}
    try:
        workflow = WorkflowGraph.model_validate(data)
    except ValidationError as exc:
        typer.secho(f"Invalid workflow document: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    if chain:
        workflow.nodes = link_sequential(workflow.nodes)
    if status is not None:
        workflow.status = status

    repo = get_repository()
    stored = asyncio.run(repo.save_workflow(workflow))
    typer.echo(f"Imported workflow {stored.id} ({len(stored.nodes)} nodes)")


@workflow_app.command("delete")
def workflow_delete(workflow_id: str) -> None:
    """Delete a workflow definition."""
    repo = get_repository()
    if not asyncio.run(repo.delete_workflow(workflow_id)):
        typer.echo("Workflow not found")
        raise typer.Exit(code=1)
    typer.echo(f"Deleted workflow {workflow_id}")


@workflow_app.command("run")
def workflow_run(
    workflow_id: str,
    data: Optional[str] = typer.Option(None, help="Trigger payload as a JSON object"),
) -> None:
    """
    Execute a workflow once and print the execution id.

    Without ``--data`` a manual-test payload is sent, matching the editor's
    "Test Run" button.

    Example:
        stepflow workflow run 0b7c... --data '{"sender": "boss@co"}'
    """
    if data:
        try:
            trigger_data = json.loads(data)
        except json.JSONDecodeError as exc:
            typer.secho(f"Invalid JSON payload: {exc}", fg=typer.colors.RED)
            raise typer.Exit(code=1)
    else:
        trigger_data = {
            "source": "manual-test",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    config = load_config()
    runner = WorkflowRunner.from_config(config, repository=get_repository())
    outcome = asyncio.run(runner.run(workflow_id, trigger_data))
    if not outcome.success:
        typer.secho(
            f"Execution {outcome.execution_id} failed ({outcome.error_kind}): {outcome.error}",
            fg=typer.colors.RED,
        )
        raise typer.Exit(code=1)
    typer.echo(f"Execution {outcome.execution_id} succeeded")


@execution_app.command("list")
def execution_list(
    workflow: Optional[str] = typer.Option(None, help="Only show runs of this workflow"),
) -> None:
    """List execution records, newest first."""
    repo = get_repository()
    records = asyncio.run(repo.list_execution_records(workflow))
    if not records:
        typer.echo("No executions found")
        return
    for rec in records:
        typer.echo(f"{rec.id}\t{rec.workflow_id}\t{rec.status.value}\t{rec.started_at}")


@execution_app.command("show")
def execution_show(execution_id: str) -> None:
    """
    Show an execution record with its per-node step history.

    Example:
        stepflow execution show 5f1e...
        # Output: Execution 5f1e...: FAILED
        #         Error: Node A1 (slack-send-message) failed: ...
        #         - T1: SUCCEEDED
        #         - A1: FAILED
    """
    repo = get_repository()
    rec = asyncio.run(repo.get_execution_record(execution_id))
    if rec is None:
        typer.echo("Execution not found")
        raise typer.Exit(code=1)
    typer.echo(f"Execution {rec.id}: {rec.status.value}")
    typer.echo(f"Workflow: {rec.workflow_id}")
    typer.echo(f"Trigger: {json.dumps(rec.trigger_data, default=str)}")
    if rec.error:
        typer.echo(f"Error: {rec.error}")
    if rec.result_data is not None:
        typer.echo(f"Results: {json.dumps(rec.result_data, default=str)}")
    for step in rec.steps:
        typer.echo(
            f"- {step.node_id}: {step.status.value if step.status else 'UNKNOWN'}"
            + (
                f" ({step.started_at} -> {step.completed_at})"
                if step.started_at or step.completed_at
                else ""
            )
        )


@connector_app.command("list")
def connector_list() -> None:
    """List the built-in connectors."""
    for descriptor in default_registry().descriptors():
        typer.echo(
            f"{descriptor.connector_type}\t{descriptor.role.value}\t{descriptor.label}"
            f"\t{descriptor.description or ''}"
        )


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    app()
