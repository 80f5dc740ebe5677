import json

import pytest

from poll_dispatcher.tools import ToolHandler, INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND


def rpc(method, params=None, req_id=1):
    body = {"jsonrpc": "2.0", "id": req_id, "method": method}
    if params is not None:
        body["params"] = params
    return body


def call(name, arguments=None, req_id=1):
    return rpc("tools/call", {"name": name, "arguments": arguments or {}}, req_id)


def payload(response):
    """Decode the JSON text inside a tools/call result"""
    content = response["result"]["content"]
    assert content[0]["type"] == "text"
    return json.loads(content[0]["text"])


@pytest.fixture()
def handler(dispatcher):
    return ToolHandler(dispatcher)


@pytest.mark.asyncio
async def test_initialize(handler):
    response = await handler.handle_request(rpc("initialize", {}))

    assert response["id"] == 1
    assert response["result"]["serverInfo"]["name"] == "poll-dispatcher"
    assert "tools" in response["result"]["capabilities"]


@pytest.mark.asyncio
async def test_tools_list_follows_mode(dispatcher):
    worker_tools = await ToolHandler(dispatcher, mode="worker").handle_request(rpc("tools/list"))
    job_tools = await ToolHandler(dispatcher, mode="job").handle_request(rpc("tools/list"))

    assert [t["name"] for t in worker_tools["result"]["tools"]] == ["worker_create", "worker_poll", "task_submit"]
    assert [t["name"] for t in job_tools["result"]["tools"]] == ["job_create", "job_status"]


@pytest.mark.asyncio
async def test_worker_tool_loop(handler, dispatcher):
    created = payload(await handler.handle_request(call("worker_create")))
    worker_id = created["worker_id"]
    assert f"worker_poll with worker_id {worker_id}" in created["instruction"]

    idle = payload(await handler.handle_request(call("worker_poll", {"worker_id": worker_id})))
    assert idle == {"worker_id": worker_id, "instruction": idle["instruction"]}

    task = dispatcher.enqueue_task("2+2?")
    assigned = payload(await handler.handle_request(call("worker_poll", {"worker_id": worker_id})))
    assert assigned["task_id"] == task.id
    assert assigned["prompt"] == "2+2?"

    submitted = payload(await handler.handle_request(
        call("task_submit", {"worker_id": worker_id, "task_id": task.id, "response": "4"})
    ))
    assert submitted["worker_id"] == worker_id
    assert dispatcher.store.get_task(task.id)["response"] == "4"


@pytest.mark.asyncio
async def test_not_found_is_a_result_not_a_fault(handler):
    response = await handler.handle_request(call("worker_poll", {"worker_id": "ghost"}))

    assert "error" not in response
    assert payload(response) == {"error": "Worker with ID ghost not found."}


@pytest.mark.asyncio
async def test_submit_unknown_task(handler):
    worker_id = payload(await handler.handle_request(call("worker_create")))["worker_id"]

    response = await handler.handle_request(
        call("task_submit", {"worker_id": worker_id, "task_id": "nope", "response": "x"})
    )

    assert payload(response) == {"error": "Task with ID nope not found."}


@pytest.mark.asyncio
async def test_unknown_tool_is_an_rpc_error(handler):
    response = await handler.handle_request(call("teleport"))

    assert response["error"]["code"] == INVALID_PARAMS
    assert response["error"]["message"] == "Unknown tool: teleport"


@pytest.mark.asyncio
async def test_tool_outside_mode_is_unknown(handler):
    response = await handler.handle_request(call("job_create"))

    assert response["error"]["message"] == "Unknown tool: job_create"


@pytest.mark.asyncio
async def test_missing_argument(handler):
    response = await handler.handle_request(call("worker_poll", {}))

    assert response["error"]["code"] == INVALID_PARAMS
    assert "worker_id" in response["error"]["message"]


@pytest.mark.asyncio
async def test_unknown_method(handler):
    response = await handler.handle_request(rpc("resources/list"))

    assert response["error"]["code"] == METHOD_NOT_FOUND


@pytest.mark.asyncio
async def test_invalid_request(handler):
    response = await handler.handle_request(["not", "an", "object"])

    assert response["id"] is None
    assert response["error"]["code"] == INVALID_REQUEST


@pytest.mark.asyncio
async def test_notification_gets_no_response(handler):
    assert await handler.handle_request({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None


@pytest.mark.asyncio
async def test_unexpected_failure_is_reported(handler, dispatcher, monkeypatch):
    def explode():
        raise RuntimeError("store on fire")

    monkeypatch.setattr(dispatcher, "create_worker", explode)

    response = await handler.handle_request(call("worker_create"))

    assert response["error"]["code"] == -32603
    assert "store on fire" in response["error"]["message"]


@pytest.mark.asyncio
async def test_job_tools(dispatcher):
    handler = ToolHandler(dispatcher, mode="job")

    created = payload(await handler.handle_request(call("job_create")))
    assert created["status"] == "running"
    assert created["instructions"].startswith(f"immediately call job_status with id {created['id']}")

    status = payload(await handler.handle_request(call("job_status", {"id": created["id"]})))
    assert status == created

    missing = payload(await handler.handle_request(call("job_status", {"id": "job_x"})))
    assert missing == {"error": "Job with ID job_x not found."}


@pytest.mark.asyncio
async def test_ping(handler):
    assert (await handler.handle_request(rpc("ping", req_id=7))) == {"jsonrpc": "2.0", "id": 7, "result": {}}


@pytest.mark.asyncio
async def test_failed_notifications_get_no_reply(handler):
    assert await handler.handle_request({"jsonrpc": "2.0", "method": "no/such/method"}) is None
    assert await handler.handle_request(
        {"jsonrpc": "2.0", "method": "tools/call", "params": {"name": "teleport"}}
    ) is None
