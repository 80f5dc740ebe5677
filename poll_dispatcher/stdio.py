"""Line-delimited JSON-RPC over stdin/stdout.

The form MCP clients use when they launch the server as a subprocess: one
request per line in, one response per line out. Every request runs as its own
task, so a long worker_poll never holds up a ping or a task_submit. The loop
ends when the input stream closes; requests still waiting are cancelled.
"""

import asyncio
import json
import sys
import threading
from typing import Callable, Optional, Set
from .dispatcher import Dispatcher
from .info import WORKER_MODE
from .monitor import LivenessMonitor
from .output import output
from .tools import ToolHandler, PARSE_ERROR


def write_stdout(line: str) -> None:
    # stdout carries protocol frames only; log_config sends every log line to stderr
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


class StdioServer:
    def __init__(self, dispatcher: Optional[Dispatcher] = None, start_monitor: Optional[bool] = None):
        self.dispatcher = dispatcher or Dispatcher()
        self.tools = ToolHandler(self.dispatcher)
        self.monitor = LivenessMonitor(self.dispatcher)
        if start_monitor is None:
            start_monitor = self.dispatcher.settings.mode == WORKER_MODE
        self.start_monitor = start_monitor
        self._pending: Set[asyncio.Task] = set()

    async def _handle_line(self, line: str, write: Callable[[str], None]) -> None:
        try:
            body = json.loads(line)
        except ValueError:
            response = ToolHandler._error_response(None, PARSE_ERROR, "Parse error")
        else:
            response = await self.tools.handle_request(body)
        if response is not None:
            write(json.dumps(response))

    async def serve(self, reader: asyncio.StreamReader, write: Callable[[str], None] = write_stdout) -> None:
        """Answer requests from reader until it reaches EOF"""
        settings = self.dispatcher.settings
        output.info(f"{settings.name} running on stdio in {settings.mode} mode with {settings.timeout}s timeout")
        if self.start_monitor:
            self.monitor.start()
        try:
            while True:
                raw = await reader.readline()
                if not raw:
                    break
                line = raw.decode("utf-8").strip()
                if not line:
                    continue
                task = asyncio.create_task(self._handle_line(line, write))
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)
            output.info("Input closed, shutting down")
        finally:
            for task in list(self._pending):
                task.cancel()
            if self._pending:
                await asyncio.gather(*self._pending, return_exceptions=True)
            await self.monitor.stop()
            self.dispatcher.store.log_summary()


def _pump_stdin(loop: asyncio.AbstractEventLoop, reader: asyncio.StreamReader) -> None:
    """Copy stdin into reader; runs on a daemon thread"""
    for line in iter(sys.stdin.buffer.readline, b""):
        loop.call_soon_threadsafe(reader.feed_data, line)
    loop.call_soon_threadsafe(reader.feed_eof)


async def run_stdio(dispatcher: Optional[Dispatcher] = None) -> None:
    """Serve JSON-RPC on stdin/stdout until stdin closes"""
    reader = asyncio.StreamReader()
    thread = threading.Thread(target=_pump_stdin, args=(asyncio.get_running_loop(), reader), daemon=True)
    thread.start()
    await StdioServer(dispatcher).serve(reader)
