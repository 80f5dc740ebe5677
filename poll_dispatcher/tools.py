"""JSON-RPC 2.0 tool surface.

Implements tool discovery (tools/list) and invocation (tools/call) over the
dispatcher, the shape MCP clients speak. Each tool result is a single text
content item holding pretty-printed JSON. Missing workers, tasks and jobs come
back as an ordinary result with an "error" key so a polling loop can carry on;
only protocol problems and unknown tools become JSON-RPC errors.
"""

import json
from typing import Any, Dict, List, Optional
from pydantic import BaseModel
from .dispatcher import Dispatcher
from .errors import NotFoundError, UnknownOperationError
from .info import WORKER_MODE, JOB_MODE
from .output import output

PROTOCOL_VERSION = "2024-11-05"

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

WORKER_TOOLS = [
    {
        "name": "worker_create",
        "description": "Register as a worker and return instructions to poll for tasks",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "worker_poll",
        "description": "Wait for a task for this worker; returns a task to answer or an instruction to poll again",
        "inputSchema": {
            "type": "object",
            "properties": {
                "worker_id": {"type": "string", "description": "ID returned by worker_create"},
            },
            "required": ["worker_id"],
        },
    },
    {
        "name": "task_submit",
        "description": "Submit the response for a task and return instructions to poll again",
        "inputSchema": {
            "type": "object",
            "properties": {
                "worker_id": {"type": "string", "description": "ID of the submitting worker"},
                "task_id": {"type": "string", "description": "ID of the task being answered"},
                "response": {"type": "string", "description": "Brief response to the task prompt"},
            },
            "required": ["worker_id", "task_id", "response"],
        },
    },
]

JOB_TOOLS = [
    {
        "name": "job_create",
        "description": "Create a new job and return instructions to check status",
        "inputSchema": {"type": "object", "properties": {}},
    },
    {
        "name": "job_status",
        "description": "Check the status of a job and returns polling instruction",
        "inputSchema": {
            "type": "object",
            "properties": {
                "id": {"type": "string", "description": "ID of the job to check"},
            },
            "required": ["id"],
        },
    },
]

TOOLS_BY_MODE = {
    WORKER_MODE: WORKER_TOOLS,
    JOB_MODE: JOB_TOOLS,
}


class JsonRpcError(Exception):
    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(message)


def _text_result(payload: Any) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        payload = payload.model_dump()
    return {"content": [{"type": "text", "text": json.dumps(payload, indent=2)}]}


def _require_str(args: Dict[str, Any], name: str) -> str:
    value = args.get(name)
    if value is None:
        raise JsonRpcError(INVALID_PARAMS, f"Missing required argument: {name}")
    if not isinstance(value, str):
        raise JsonRpcError(INVALID_PARAMS, f"Argument {name} must be a string")
    return value


def is_notification(body: Any) -> bool:
    """A request object without an id expects no reply"""
    return isinstance(body, dict) and "id" not in body


class ToolHandler:
    """Handles JSON-RPC requests and dispatches tool calls"""

    def __init__(self, dispatcher: Dispatcher, mode: Optional[str] = None):
        self.dispatcher = dispatcher
        self.mode = mode or dispatcher.settings.mode

    @property
    def tools(self) -> List[Dict[str, Any]]:
        return TOOLS_BY_MODE[self.mode]

    async def handle_request(self, body: Any) -> Optional[Dict[str, Any]]:
        """Process one JSON-RPC request; returns None for notifications, even failed ones"""
        if not isinstance(body, dict) or not isinstance(body.get("method"), str):
            return self._error_response(body.get("id") if isinstance(body, dict) else None,
                                        INVALID_REQUEST, "Invalid Request")

        method = body["method"]
        params = body.get("params") or {}
        req_id = body.get("id")
        output.debug(f"RPC request: method={method} id={req_id}")

        try:
            result = await self._dispatch(method, params)
        except JsonRpcError as e:
            output.warning(f"RPC method {method} rejected: {e.message}")
            response = self._error_response(req_id, e.code, e.message)
        except UnknownOperationError as e:
            output.warning(f"RPC method {method} failed: {e}")
            response = self._error_response(req_id, INVALID_PARAMS, str(e))
        except Exception as e:
            output.error(f"RPC method {method} failed: {e}", exc_info=True)
            response = self._error_response(req_id, INTERNAL_ERROR, str(e))
        else:
            response = {"jsonrpc": "2.0", "id": req_id, "result": result}

        if is_notification(body):
            return None
        return response

    async def _dispatch(self, method: str, params: Dict[str, Any]) -> Any:
        if method == "initialize":
            return self._handle_initialize()
        if method in ("initialized", "notifications/initialized"):
            return {}
        if method == "tools/list":
            return {"tools": self.tools}
        if method == "tools/call":
            if not isinstance(params, dict):
                raise JsonRpcError(INVALID_PARAMS, "params must be an object")
            return await self.call_tool(params.get("name", ""), params.get("arguments") or {})
        if method == "ping":
            return {}
        raise JsonRpcError(METHOD_NOT_FOUND, f"Unknown method: {method}")

    def _handle_initialize(self) -> Dict[str, Any]:
        settings = self.dispatcher.settings
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": settings.name, "version": settings.version},
        }

    async def call_tool(self, name: str, args: Dict[str, Any]) -> Dict[str, Any]:
        if name not in {tool["name"] for tool in self.tools}:
            raise UnknownOperationError(name)
        if not isinstance(args, dict):
            raise JsonRpcError(INVALID_PARAMS, "arguments must be an object")

        output.info(f"Tool call: {name}")
        try:
            if name == "worker_create":
                return _text_result(self.dispatcher.create_worker())
            if name == "worker_poll":
                return _text_result(await self.dispatcher.poll(_require_str(args, "worker_id")))
            if name == "task_submit":
                return _text_result(self.dispatcher.submit(
                    _require_str(args, "worker_id"),
                    _require_str(args, "task_id"),
                    _require_str(args, "response"),
                ))
            if name == "job_create":
                return _text_result(self.dispatcher.create_job())
            if name == "job_status":
                return _text_result(await self.dispatcher.get_job_status(_require_str(args, "id")))
        except NotFoundError as e:
            output.warning(str(e))
            return _text_result({"error": e.message})
        raise UnknownOperationError(name)

    @staticmethod
    def _error_response(req_id: Any, code: int, message: str) -> Dict[str, Any]:
        return {"jsonrpc": "2.0", "id": req_id, "error": {"code": code, "message": message}}
