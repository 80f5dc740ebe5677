import secrets
from collections import deque
from threading import Lock
from typing import List, Optional, Dict, Any, Deque, Iterable
import random
from .clock import Clock, clock as default_clock
from .errors import NotFoundError
from .models import Worker, Task, Job
from .output import output
from .prompts import PromptPool
from .states import task_states, worker_states


class EntityStore:
    """Owns every worker, task and job record plus the pending queue and prompt pool.

    A single lock guards all of it. Every public method takes the lock for
    its whole body and never awaits, so each call is one atomic step with
    respect to every other call, from any coroutine or thread.
    """

    def __init__(
        self,
        prompts: Optional[Iterable[str]] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        self._lock = Lock()
        self._clock = clock or default_clock
        self._workers: Dict[str, Worker] = {}
        self._tasks: Dict[str, Task] = {}
        self._jobs: Dict[str, Job] = {}
        self._queue: Deque[str] = deque()  # task ids, FIFO
        self._pool = PromptPool(prompts, rng)

    def _new_id(self, prefix: str, taken: Dict[str, Any]) -> str:
        """Time component plus entropy; re-drawn on collision. Caller holds the lock."""
        while True:
            millis = int(self._clock.now().timestamp() * 1000)
            candidate = f"{prefix}_{millis}_{secrets.token_hex(6)}"
            if candidate not in taken:
                return candidate

    def _require_worker(self, worker_id: str) -> Worker:
        worker = self._workers.get(worker_id)
        if worker is None:
            raise NotFoundError("worker", worker_id)
        return worker

    def _require_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    @staticmethod
    def _transition(task: Task, to_state: str) -> None:
        if not task_states.is_valid_transition(task.status, to_state):
            raise ValueError(f"Invalid task transition {task.status} -> {to_state} for {task.id}")
        task.status = to_state

    def _push(self, prompt: str) -> Task:
        task = Task(self._new_id("task", self._tasks), prompt, self._clock.now())
        self._tasks[task.id] = task
        self._queue.append(task.id)
        return task

    # Workers

    def create_worker(self) -> Worker:
        with self._lock:
            worker = Worker(self._new_id("worker", self._workers), self._clock.now())
            self._workers[worker.id] = worker
            return worker

    def touch_worker(self, worker_id: str) -> None:
        """Record a poll for liveness; raises NotFoundError for unknown ids"""
        with self._lock:
            self._require_worker(worker_id).last_poll_at = self._clock.now()

    def alive_workers(self, window_seconds: float) -> List[str]:
        """Ids of workers that polled within the last window_seconds"""
        now = self._clock.now()
        with self._lock:
            return [
                w.id for w in self._workers.values()
                if w.last_poll_at is not None
                and (now - w.last_poll_at).total_seconds() <= window_seconds
            ]

    # Tasks

    def enqueue_task(self, prompt: str) -> Task:
        if not prompt or not prompt.strip():
            raise ValueError("prompt is required")
        with self._lock:
            return self._push(prompt)

    def enqueue_from_pool(self, capacity: int) -> Optional[Task]:
        """Turn one pool prompt into a pending task if the queue has room.

        Returns None when the queue is at capacity or the pool is exhausted.
        """
        with self._lock:
            if len(self._queue) >= capacity:
                return None
            prompt = self._pool.draw()
            if prompt is None:
                return None
            return self._push(prompt)

    def assign_next(self, worker_id: str) -> Optional[Task]:
        """Pop the oldest pending task and assign it to worker_id in one step.

        Returns None if the queue is empty.
        """
        with self._lock:
            worker = self._require_worker(worker_id)
            if not self._queue:
                return None
            task = self._tasks[self._queue.popleft()]
            self._transition(task, task_states.ASSIGNED)
            task.worker_id = worker.id
            task.assigned_at = self._clock.now()
            worker.status = worker_states.ACTIVE
            return task

    def complete_task(self, worker_id: str, task_id: str, response: str) -> Task:
        """Record a response. The submitting worker need not be the assignee."""
        with self._lock:
            worker = self._require_worker(worker_id)
            task = self._require_task(task_id)
            now = self._clock.now()
            if task_states.is_queued(task.status):
                # Answered before anyone polled it: take it out of the queue
                # and pass through assigned so status stays monotonic
                self._queue.remove(task.id)
                self._transition(task, task_states.ASSIGNED)
                task.worker_id = worker.id
                task.assigned_at = now
            self._transition(task, task_states.COMPLETED)
            task.response = response
            task.completed_at = now
            worker.status = worker_states.IDLE
            return task

    # Jobs

    def create_job(self) -> Job:
        with self._lock:
            job = Job(self._new_id("job", self._jobs), self._clock.now())
            self._jobs[job.id] = job
            return job

    def require_job(self, job_id: str) -> Job:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                raise NotFoundError("job", job_id)
            return job

    # Snapshots

    def get_worker(self, worker_id: str) -> Dict[str, Any]:
        with self._lock:
            return self._require_worker(worker_id).to_dict()

    def get_task(self, task_id: str) -> Dict[str, Any]:
        with self._lock:
            return self._require_task(task_id).to_dict()

    def list_workers(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [w.to_dict() for w in self._workers.values()]

    def list_tasks(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        with self._lock:
            return [t.to_dict() for t in self._tasks.values() if status is None or t.status == status]

    def queued_task_ids(self) -> List[str]:
        with self._lock:
            return list(self._queue)

    @property
    def queue_length(self) -> int:
        with self._lock:
            return len(self._queue)

    @property
    def prompts_remaining(self) -> int:
        with self._lock:
            return len(self._pool)

    def stats(self, window_seconds: float) -> Dict[str, Any]:
        alive = len(self.alive_workers(window_seconds))
        with self._lock:
            by_status = {state: 0 for state in task_states.get_all_states()}
            for task in self._tasks.values():
                by_status[task.status] += 1
            return {
                'workers': len(self._workers),
                'alive_workers': alive,
                'queue_length': len(self._queue),
                'tasks_by_status': by_status,
                'prompts_remaining': len(self._pool),
                'jobs': len(self._jobs),
            }

    def log_summary(self) -> None:
        with self._lock:
            output.info(
                f"Store holds {len(self._workers)} workers, {len(self._tasks)} tasks "
                f"({len(self._queue)} queued), {len(self._jobs)} jobs"
            )
