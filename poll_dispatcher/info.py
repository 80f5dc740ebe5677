import os
from . import __version__
from typing import Optional
from .output import output

WORKER_MODE = "worker"
JOB_MODE = "job"
MODES = (WORKER_MODE, JOB_MODE)

HTTP_TRANSPORT = "http"
STDIO_TRANSPORT = "stdio"
TRANSPORTS = (HTTP_TRANSPORT, STDIO_TRANSPORT)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        output.warning(f"Ignoring invalid {name}={raw!r}, using {default}")
        return default


class Info:
    """Process-wide settings, read once at startup.

    Defaults come from the environment (DISPATCHER_* variables) and can be
    overridden by the CLI through configure(). Values are only checked by
    configure(), so a bad variable is reported by the CLI, not at import.
    """

    def __init__(self):
        self.name = "poll-dispatcher"
        self.desc = "In-memory long-poll task dispatch server"
        self.version = __version__
        self.load_env()

    def load_env(self):
        """(Re)read every setting from the environment"""
        self.timeout = _env_float('DISPATCHER_TIMEOUT', 59.0)
        self.poll_interval = _env_float('DISPATCHER_POLL_INTERVAL', 1.0)
        self.grace = _env_float('DISPATCHER_GRACE', 5.0)
        self.queue_capacity = int(_env_float('DISPATCHER_QUEUE_CAPACITY', 3))
        self.monitor_interval = _env_float('DISPATCHER_MONITOR_INTERVAL', 5.0)
        self.mode = os.getenv('DISPATCHER_MODE', WORKER_MODE)
        self.host = os.getenv('DISPATCHER_HOST', '127.0.0.1')
        self.port = int(_env_float('DISPATCHER_PORT', 8000))
        self.transport = os.getenv('DISPATCHER_TRANSPORT', HTTP_TRANSPORT)

    def configure(
        self,
        timeout: Optional[float] = None,
        mode: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        poll_interval: Optional[float] = None,
        grace: Optional[float] = None,
        queue_capacity: Optional[int] = None,
        monitor_interval: Optional[float] = None,
        transport: Optional[str] = None,
    ):
        """Override settings; None leaves the current value in place"""
        if timeout is not None:
            self.timeout = float(timeout)
        if mode is not None:
            self.mode = mode
        if host is not None:
            self.host = host
        if port is not None:
            self.port = int(port)
        if poll_interval is not None:
            self.poll_interval = float(poll_interval)
        if grace is not None:
            self.grace = float(grace)
        if queue_capacity is not None:
            self.queue_capacity = int(queue_capacity)
        if monitor_interval is not None:
            self.monitor_interval = float(monitor_interval)
        if transport is not None:
            self.transport = transport
        self.validate()

    def validate(self):
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        if self.poll_interval <= 0:
            raise ValueError(f"poll interval must be positive, got {self.poll_interval}")
        if self.monitor_interval <= 0:
            raise ValueError(f"monitor interval must be positive, got {self.monitor_interval}")
        if self.grace < 0:
            raise ValueError(f"grace must not be negative, got {self.grace}")
        if self.queue_capacity < 1:
            raise ValueError(f"queue capacity must be at least 1, got {self.queue_capacity}")
        if self.mode not in MODES:
            raise ValueError(f"mode must be one of {', '.join(MODES)}, got {self.mode!r}")
        if self.transport not in TRANSPORTS:
            raise ValueError(f"transport must be one of {', '.join(TRANSPORTS)}, got {self.transport!r}")
        # The wait between queue checks never exceeds a whole poll
        self.poll_interval = min(self.poll_interval, self.timeout)

    @property
    def liveness_window(self) -> float:
        """Seconds since the last poll within which a worker counts as alive"""
        return self.timeout + self.grace

    def to_dict(self):
        return {
            'name': self.name,
            'version': self.version,
            'mode': self.mode,
            'transport': self.transport,
            'timeout': self.timeout,
            'poll_interval': self.poll_interval,
            'grace': self.grace,
            'queue_capacity': self.queue_capacity,
            'monitor_interval': self.monitor_interval,
        }


info = Info()
