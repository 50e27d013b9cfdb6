import pytest

from stepflow.contracts import ExecutionResult, ExecutionStatus, NodeState, RunState
from stepflow.errors import RecorderError
from stepflow.persistence import InMemoryWorkflowRepository
from stepflow.recorder import ExecutionRecorder


@pytest.fixture
def repo():
    return InMemoryWorkflowRepository()


@pytest.mark.asyncio
async def test_begin_writes_pending_record(repo):
    recorder = ExecutionRecorder(repo)
    record = await recorder.begin("wf-1", {"sender": "boss@co"})

    stored = await repo.get_execution_record(record.id)
    assert stored.status == ExecutionStatus.PENDING
    assert stored.trigger_data == {"sender": "boss@co"}
    assert not stored.is_finished


@pytest.mark.asyncio
async def test_finish_success_stores_step_results(repo):
    recorder = ExecutionRecorder(repo)
    record = await recorder.begin("wf-1", {})
    result = ExecutionResult(
        state=RunState.COMPLETED,
        node_states={"T1": NodeState.SUCCEEDED},
        step_results={"T1": {"ok": True}},
    )

    assert await recorder.finish(record.id, result) == ExecutionStatus.SUCCESS
    stored = await repo.get_execution_record(record.id)
    assert stored.result_data == {"T1": {"ok": True}}
    assert stored.error is None
    assert stored.node_states == {"T1": NodeState.SUCCEEDED}
    assert stored.is_finished


@pytest.mark.asyncio
async def test_finish_failure_stores_error_only(repo):
    recorder = ExecutionRecorder(repo)
    record = await recorder.begin("wf-1", {})
    result = ExecutionResult(
        state=RunState.ABORTED,
        node_states={"T1": NodeState.SUCCEEDED, "A1": NodeState.FAILED},
        step_results={"T1": {}},
        error="Node A1 (slack-send-message) failed: boom",
        failed_node="A1",
    )

    assert await recorder.finish(record.id, result) == ExecutionStatus.FAILED
    stored = await repo.get_execution_record(record.id)
    assert stored.error == "Node A1 (slack-send-message) failed: boom"
    assert stored.error_kind == "workflow"
    assert stored.result_data is None
    assert stored.node_states["A1"] == NodeState.FAILED


@pytest.mark.asyncio
async def test_finish_without_result_records_system_error(repo):
    recorder = ExecutionRecorder(repo)
    record = await recorder.begin("wf-1", {})
    await recorder.finish(record.id, error="database went away", error_kind="system")
    stored = await repo.get_execution_record(record.id)
    assert stored.status == ExecutionStatus.FAILED
    assert stored.error_kind == "system"


@pytest.mark.asyncio
async def test_finish_is_exactly_once(repo):
    recorder = ExecutionRecorder(repo)
    record = await recorder.begin("wf-1", {})
    await recorder.finish(record.id, error="first")
    with pytest.raises(RecorderError):
        await recorder.finish(record.id, error="second")
    assert (await repo.get_execution_record(record.id)).error == "first"


@pytest.mark.asyncio
async def test_step_listener_writes_history(repo):
    recorder = ExecutionRecorder(repo)
    record = await recorder.begin("wf-1", {})
    listener = recorder.step_listener(record.id)

    await listener("T1", NodeState.RUNNING, None)
    await listener("T1", NodeState.SUCCEEDED, {"sender": "boss@co"})
    await listener("A1", NodeState.RUNNING, None)
    await listener("A1", NodeState.FAILED, "boom")
    await listener("A2", NodeState.SKIPPED, "upstream A1 failed")

    steps = {s.node_id: s for s in (await repo.get_execution_record(record.id)).steps}
    assert steps["T1"].output == {"sender": "boss@co"}
    assert steps["A1"].status == NodeState.FAILED
    assert steps["A1"].output == {"error": "boom"}
    assert steps["A2"].output == {"reason": "upstream A1 failed"}


@pytest.mark.asyncio
async def test_finished_record_is_refused_by_any_recorder(repo):
    record = await ExecutionRecorder(repo).begin("wf-1", {})
    await ExecutionRecorder(repo).finish(record.id, error="first")

    with pytest.raises(RecorderError):
        await ExecutionRecorder(repo).finish(record.id, error="second")
    assert (await repo.get_execution_record(record.id)).error == "first"


@pytest.mark.asyncio
async def test_finish_unknown_execution_raises(repo):
    with pytest.raises(RecorderError):
        await ExecutionRecorder(repo).finish("missing", error="boom")


@pytest.mark.asyncio
async def test_recorder_keeps_no_per_run_state(repo):
    recorder = ExecutionRecorder(repo)
    before = dict(vars(recorder))
    for _ in range(20):
        record = await recorder.begin("wf-1", {})
        await recorder.finish(record.id, error="boom")
    assert vars(recorder) == before
