from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field
from .states import task_states, worker_states, job_states


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """Render an aware datetime as ISO-8601, None stays None"""
    if dt is None:
        return None
    return dt.isoformat()


class Worker:
    """A registered caller that long-polls for tasks"""

    def __init__(self, id: str, created_at: datetime):
        self.id = id
        self.status = worker_states.IDLE
        self.created_at = created_at
        # Only used to decide liveness, never for dispatch
        self.last_poll_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status,
            'created_at': format_datetime(self.created_at),
            'last_poll_at': format_datetime(self.last_poll_at),
        }


class Task:
    """A prompt waiting for, held by, or answered by a worker"""

    def __init__(self, id: str, prompt: str, created_at: datetime):
        self.id = id
        self.prompt = prompt
        self.status = task_states.PENDING
        self.worker_id = ""
        self.response: Optional[str] = None
        self.created_at = created_at
        self.assigned_at: Optional[datetime] = None
        self.completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'prompt': self.prompt,
            'status': self.status,
            'worker_id': self.worker_id,
            'response': self.response,
            'created_at': format_datetime(self.created_at),
            'assigned_at': format_datetime(self.assigned_at),
            'completed_at': format_datetime(self.completed_at),
        }


class Job:
    def __init__(self, id: str, created_at: datetime):
        self.id = id
        self.status = job_states.RUNNING
        self.created_at = created_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'status': self.status,
            'created_at': format_datetime(self.created_at),
        }


class WorkerCreated(BaseModel):
    """Result of registering a worker"""
    worker_id: str = Field(..., description="New worker ID")
    instruction: str = Field(..., description="What the caller should do next")


class TaskAssignment(BaseModel):
    """Poll result carrying a task"""
    worker_id: str = Field(..., description="Polling worker ID")
    task_id: str = Field(..., description="Assigned task ID")
    prompt: str = Field(..., description="Task payload")
    instruction: str = Field(..., description="What the caller should do next")


class PollIdle(BaseModel):
    """Poll result when no task turned up before the timeout"""
    worker_id: str = Field(..., description="Polling worker ID")
    instruction: str = Field(..., description="What the caller should do next")


class SubmitAccepted(BaseModel):
    """Result of submitting a task response"""
    worker_id: str = Field(..., description="Submitting worker ID")
    instruction: str = Field(..., description="What the caller should do next")


class JobStatusResult(BaseModel):
    """Result of creating or checking a job"""
    id: str = Field(..., description="Job ID")
    status: str = Field(job_states.RUNNING, description="Job status")
    instructions: str = Field(..., description="What the caller should do next")


class SubmitRequest(BaseModel):
    """Request model for submitting a task response"""
    task_id: str = Field(..., description="ID of the task being answered")
    response: str = Field(..., description="Response text")


class TaskCreateRequest(BaseModel):
    """Request model for enqueuing a task by hand"""
    prompt: str = Field(..., min_length=1, description="Task payload")
