class TaskStates:
    def __init__(self):
        # Task state definitions
        self.PENDING = "pending"
        self.ASSIGNED = "assigned"
        self.COMPLETED = "completed"

        # Valid state transitions; tasks only ever move forward
        self._valid_transitions = {
            self.PENDING: [self.ASSIGNED],
            self.ASSIGNED: [self.COMPLETED],
            # Re-submitting a completed task overwrites its response
            self.COMPLETED: [self.COMPLETED],
        }

    def is_valid_transition(self, from_state: str, to_state: str) -> bool:
        """Check if a state transition is valid"""
        return to_state in self._valid_transitions.get(from_state, [])

    def is_queued(self, state: str) -> bool:
        """A task sits in the queue iff it is pending"""
        return state == self.PENDING

    def is_terminal(self, state: str) -> bool:
        return state == self.COMPLETED

    def get_all_states(self) -> list:
        """Get all task states in lifecycle order"""
        return [self.PENDING, self.ASSIGNED, self.COMPLETED]


class WorkerStates:
    def __init__(self):
        self.IDLE = "idle"
        self.ACTIVE = "active"

    def get_all_states(self) -> list:
        return [self.IDLE, self.ACTIVE]


class JobStates:
    def __init__(self):
        # No transition out of running is reachable
        self.RUNNING = "running"

    def get_all_states(self) -> list:
        return [self.RUNNING]


# Create singleton instances
task_states = TaskStates()
worker_states = WorkerStates()
job_states = JobStates()
