#!/usr/bin/env python3
"""
Poll Dispatcher Worker
Registers with a dispatch server, long-polls for tasks and submits responses
"""

import argparse
import asyncio
import sys
from typing import Callable, Optional, Dict, Any
import httpx
from . import __version__
from .output import output

# Connect/write stay short; reads wait out a full server-side poll
DEFAULT_TIMEOUT = httpx.Timeout(10.0, read=None)


def echo_responder(prompt: str) -> str:
    """Default answer: acknowledge the prompt"""
    return f"ack: {prompt}"


class PollingWorker:
    def __init__(
        self,
        client: httpx.AsyncClient,
        responder: Callable[[str], str] = echo_responder,
        retry_delay: float = 2.0,
    ):
        self.client = client
        self.responder = responder
        self.retry_delay = retry_delay
        self.worker_id: Optional[str] = None
        self.completed = 0

    async def register(self) -> str:
        """Create a worker on the server and remember its ID"""
        response = await self.client.post("/api/workers")
        response.raise_for_status()
        self.worker_id = response.json()["worker_id"]
        output.info(f"Registered as worker {self.worker_id}")
        return self.worker_id

    async def poll(self) -> Optional[Dict[str, Any]]:
        """One long-poll; returns the assignment or None when idle.

        A 404 means the server forgot this worker (e.g. it restarted), so
        register again and report idle.
        """
        if self.worker_id is None:
            await self.register()
        response = await self.client.post(f"/api/workers/{self.worker_id}/poll")
        if response.status_code == 404:
            output.warning(f"Server does not know worker {self.worker_id}, registering again")
            await self.register()
            return None
        response.raise_for_status()
        result = response.json()
        return result if "task_id" in result else None

    async def submit(self, task_id: str, answer: str) -> None:
        response = await self.client.post(
            f"/api/workers/{self.worker_id}/submit",
            json={"task_id": task_id, "response": answer},
        )
        response.raise_for_status()

    async def run_once(self) -> bool:
        """Poll once and answer the task if one arrived; True if a task was completed"""
        assignment = await self.poll()
        if assignment is None:
            output.debug("No task, polling again")
            return False
        task_id = assignment["task_id"]
        output.info(f"Received task {task_id}: {assignment['prompt']}")
        await self.submit(task_id, self.responder(assignment["prompt"]))
        self.completed += 1
        output.info(f"Submitted task {task_id}")
        return True

    async def run(self, max_tasks: Optional[int] = None) -> int:
        """Poll continuously until max_tasks are completed (forever if None)"""
        while max_tasks is None or self.completed < max_tasks:
            try:
                await self.run_once()
            except httpx.HTTPError as e:
                output.warning(f"Request to dispatcher failed: {e}; retrying in {self.retry_delay}s")
                await asyncio.sleep(self.retry_delay)
        return self.completed


async def run_worker(server_url: str, max_tasks: Optional[int] = None) -> int:
    async with httpx.AsyncClient(base_url=server_url.rstrip('/'), timeout=DEFAULT_TIMEOUT) as client:
        return await PollingWorker(client).run(max_tasks)


def main(argv=None):
    """Worker CLI entry point"""
    parser = argparse.ArgumentParser(
        description="Poll Dispatcher Worker - answers tasks from a dispatch server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  poll-dispatcher-worker --server-url http://localhost:8000
  poll-dispatcher-worker --server-url http://localhost:8000 --max-tasks 5
        """
    )
    parser.add_argument(
        "--server-url",
        required=True,
        help="Dispatch server URL (required)"
    )
    parser.add_argument(
        "--max-tasks",
        type=int,
        default=None,
        help="Stop after this many completed tasks (default: run forever)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"Poll Dispatcher Worker v{__version__}"
    )
    args = parser.parse_args(argv)
    output.configure(debug=args.debug)

    if not args.server_url.startswith(('http://', 'https://')):
        output.error("Server URL must start with http:// or https://")
        sys.exit(1)

    if args.max_tasks is not None and args.max_tasks < 1:
        output.error("max-tasks must be at least 1")
        sys.exit(1)

    try:
        completed = asyncio.run(run_worker(args.server_url, args.max_tasks))
        output.info(f"Worker finished after {completed} task(s)")
    except KeyboardInterrupt:
        output.info("Shutting down worker...")
        sys.exit(0)


if __name__ == "__main__":
    main()
