import asyncio
import json
import time

import pytest

from poll_dispatcher.dispatcher import Dispatcher
from poll_dispatcher.stdio import StdioServer
from poll_dispatcher.store import EntityStore


class Pipe:
    """Feeds request lines to a StdioServer and collects its response lines"""

    def __init__(self, server):
        self.server = server
        self.reader = asyncio.StreamReader()
        self.lines = []
        self.task = asyncio.create_task(server.serve(self.reader, self.lines.append))

    def send(self, payload):
        text = payload if isinstance(payload, str) else json.dumps(payload)
        self.reader.feed_data(text.encode("utf-8") + b"\n")

    async def responses(self, count, timeout=2.0):
        deadline = time.monotonic() + timeout
        while len(self.lines) < count:
            assert time.monotonic() < deadline, f"expected {count} responses, got {self.lines}"
            await asyncio.sleep(0.01)
        return [json.loads(line) for line in self.lines]

    async def close(self):
        self.reader.feed_eof()
        await asyncio.wait_for(self.task, timeout=2.0)


def call(name, arguments=None, req_id=1):
    return {"jsonrpc": "2.0", "id": req_id, "method": "tools/call",
            "params": {"name": name, "arguments": arguments or {}}}


def text_of(response):
    return json.loads(response["result"]["content"][0]["text"])


@pytest.mark.asyncio
async def test_answers_requests_until_eof(dispatcher):
    pipe = Pipe(StdioServer(dispatcher, start_monitor=False))

    pipe.send({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {}})
    pipe.send({"jsonrpc": "2.0", "id": 2, "method": "tools/list"})
    responses = await pipe.responses(2)
    await pipe.close()

    by_id = {r["id"]: r for r in responses}
    assert by_id[1]["result"]["serverInfo"]["name"] == "poll-dispatcher"
    assert [t["name"] for t in by_id[2]["result"]["tools"]] == ["worker_create", "worker_poll", "task_submit"]
    assert pipe.task.done()


@pytest.mark.asyncio
async def test_waiting_poll_does_not_block_other_requests(dispatcher):
    pipe = Pipe(StdioServer(dispatcher, start_monitor=False))

    pipe.send(call("worker_create"))
    worker_id = text_of((await pipe.responses(1))[0])["worker_id"]

    pipe.send(call("worker_poll", {"worker_id": worker_id}, req_id=2))
    pipe.send({"jsonrpc": "2.0", "id": 3, "method": "ping"})
    responses = await pipe.responses(3)
    await pipe.close()

    # ping overtakes the poll, which only answers after its timeout
    assert [r["id"] for r in responses] == [1, 3, 2]
    assert "task_id" not in text_of(responses[2])


@pytest.mark.asyncio
async def test_bad_lines(dispatcher):
    pipe = Pipe(StdioServer(dispatcher, start_monitor=False))

    pipe.send("")
    pipe.send("{not json")
    pipe.send({"jsonrpc": "2.0", "method": "notifications/initialized"})
    pipe.send({"jsonrpc": "2.0", "method": "no/such/method"})
    pipe.send({"jsonrpc": "2.0", "id": 9, "method": "ping"})
    responses = await pipe.responses(2)
    await asyncio.sleep(0.05)
    await pipe.close()

    assert len(pipe.lines) == 2
    assert responses[0]["error"]["code"] == -32700
    assert responses[1] == {"jsonrpc": "2.0", "id": 9, "result": {}}


@pytest.mark.asyncio
async def test_eof_cancels_waiting_requests_and_stops_monitor(settings):
    settings.configure(timeout=5.0)
    # Empty pool, so the monitor never hands the poll a task
    dispatcher = Dispatcher(store=EntityStore(prompts=[]), settings=settings)
    server = StdioServer(dispatcher)
    pipe = Pipe(server)

    pipe.send(call("worker_create"))
    worker_id = text_of((await pipe.responses(1))[0])["worker_id"]
    assert server.monitor.running

    pipe.send(call("worker_poll", {"worker_id": worker_id}, req_id=2))
    await asyncio.sleep(0.05)
    started = time.monotonic()
    await pipe.close()

    assert time.monotonic() - started < 1.0
    assert len(pipe.lines) == 1
    assert not server.monitor.running


@pytest.mark.asyncio
async def test_job_mode_serves_job_tools_without_monitor(dispatcher, settings):
    settings.configure(mode="job")
    server = StdioServer(dispatcher)
    pipe = Pipe(server)

    pipe.send(call("job_create"))
    created = text_of((await pipe.responses(1))[0])
    assert not server.monitor.running
    await pipe.close()

    assert created["status"] == "running"
