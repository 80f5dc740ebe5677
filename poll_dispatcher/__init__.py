"""
Poll Dispatcher Package - in-memory long-poll task dispatch server
Workers register, long-poll for tasks and submit responses over HTTP
"""

__version__ = "1.0.0"
__author__ = "Poll Dispatcher Team"
__description__ = "Poll Dispatcher - long-poll task dispatch over HTTP and JSON-RPC"

from .cli import main as cli_main
from .dispatcher import Dispatcher
from .server import create_app, run_server
from .stdio import StdioServer, run_stdio

__all__ = ["cli_main", "Dispatcher", "create_app", "run_server", "StdioServer", "run_stdio"]
