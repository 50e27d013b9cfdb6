import asyncio
import json

import pytest
from typer.testing import CliRunner

import stepflow.persistence as persistence
from stepflow.cli import app
from stepflow.contracts import ExecutionStatus, WorkflowGraph, WorkflowStatus
from stepflow.persistence import InMemoryWorkflowRepository
from tests.fixtures.graphs import action, trigger

WORKFLOW_YAML = """
name: Email to Slack
status: ACTIVE
nodes:
  - id: T1
    type: TRIGGER
    connectorType: gmail-new-email
    config:
      senderFilter: boss@co
  - id: A1
    type: ACTION
    connectorType: slack-send-message
    config:
      channelId: alerts
      messageTemplate: "Mail from {{trigger.sender}}"
"""


@pytest.fixture
def repo(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("STEPFLOW_CONFIG", raising=False)
    repo = InMemoryWorkflowRepository()
    monkeypatch.setattr(persistence, "_repository_instance", repo)
    return repo


@pytest.fixture
def cli():
    return CliRunner()


def _save(repo, **kwargs) -> WorkflowGraph:
    wf = WorkflowGraph(
        name="Email to Slack",
        status=WorkflowStatus.ACTIVE,
        nodes=[trigger("T1", "gmail-new-email"), action("A1", ["T1"], "slack-send-message")],
        **kwargs,
    )
    return asyncio.run(repo.save_workflow(wf))


def test_workflow_list(repo, cli):
    result = cli.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0
    assert "No workflows found" in result.stdout

    wf = _save(repo)
    result = cli.invoke(app, ["workflow", "list"])
    assert result.exit_code == 0, result.stdout
    assert wf.id in result.stdout
    assert "ACTIVE" in result.stdout
    assert "(2 nodes)" in result.stdout


def test_workflow_show_and_missing(repo, cli):
    wf = _save(repo)
    result = cli.invoke(app, ["workflow", "show", wf.id])
    assert result.exit_code == 0, result.stdout
    assert "A1 ACTION slack-send-message (after: T1)" in result.stdout

    missing = cli.invoke(app, ["workflow", "show", "missing-id"])
    assert missing.exit_code == 1
    assert "Workflow not found" in missing.stdout


def test_workflow_import_chain(repo, cli, tmp_path):
    path = tmp_path / "wf.yaml"
    path.write_text(WORKFLOW_YAML)

    result = cli.invoke(app, ["workflow", "import", str(path), "--chain"])
    assert result.exit_code == 0, result.stdout
    assert "(2 nodes)" in result.stdout

    [stored] = asyncio.run(repo.list_workflows())
    assert stored.name == "Email to Slack"
    assert stored.status == WorkflowStatus.ACTIVE
    assert stored.nodes[1].depends_on == ["T1"]
    assert stored.nodes[1].config["channelId"] == "alerts"


def test_workflow_import_rejects_bad_documents(repo, cli, tmp_path):
    missing = cli.invoke(app, ["workflow", "import", str(tmp_path / "nope.yaml")])
    assert missing.exit_code == 1

    path = tmp_path / "bad.yaml"
    path.write_text("nodes:\n  - id: T1\n")
    result = cli.invoke(app, ["workflow", "import", str(path)])
    assert result.exit_code == 1
    assert "Invalid workflow document" in result.stdout


def test_workflow_run_records_execution(repo, cli):
    wf = _save(repo)
    result = cli.invoke(
        app, ["workflow", "run", wf.id, "--data", json.dumps({"sender": "boss@co"})]
    )
    assert result.exit_code == 0, result.stdout
    assert "succeeded" in result.stdout

    [record] = asyncio.run(repo.list_execution_records(wf.id))
    assert record.status == ExecutionStatus.SUCCESS
    assert record.result_data["T1"] == {"sender": "boss@co"}

    listed = cli.invoke(app, ["execution", "list", "--workflow", wf.id])
    assert record.id in listed.stdout

    shown = cli.invoke(app, ["execution", "show", record.id])
    assert shown.exit_code == 0
    assert "SUCCESS" in shown.stdout
    assert "- T1: SUCCEEDED" in shown.stdout
    assert "- A1: SUCCEEDED" in shown.stdout


def test_workflow_run_failure_exits_nonzero(repo, cli):
    wf = WorkflowGraph(
        status=WorkflowStatus.ACTIVE,
        nodes=[trigger("T1", "gmail-new-email"), action("A1", ["T1"], "notion-create-page")],
    )
    asyncio.run(repo.save_workflow(wf))

    result = cli.invoke(app, ["workflow", "run", wf.id])
    assert result.exit_code == 1
    assert "notion-create-page" in result.stdout

    [record] = asyncio.run(repo.list_execution_records(wf.id))
    shown = cli.invoke(app, ["execution", "show", record.id])
    assert "FAILED" in shown.stdout
    assert "Error:" in shown.stdout


def test_workflow_run_invalid_json(repo, cli):
    wf = _save(repo)
    result = cli.invoke(app, ["workflow", "run", wf.id, "--data", "{not json"])
    assert result.exit_code == 1
    assert asyncio.run(repo.list_execution_records()) == []


def test_workflow_delete(repo, cli):
    wf = _save(repo)
    assert cli.invoke(app, ["workflow", "delete", wf.id]).exit_code == 0
    assert cli.invoke(app, ["workflow", "delete", wf.id]).exit_code == 1


def test_execution_show_missing(repo, cli):
    result = cli.invoke(app, ["execution", "show", "nope"])
    assert result.exit_code == 1
    assert "Execution not found" in result.stdout


def test_connector_list(repo, cli):
    result = cli.invoke(app, ["connector", "list"])
    assert result.exit_code == 0
    assert "slack-send-message" in result.stdout
    assert "gmail-new-email\tTRIGGER" in result.stdout
