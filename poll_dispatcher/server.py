import asyncio
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Optional
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.background import BackgroundTask
from .dispatcher import Dispatcher
from .errors import NotFoundError
from .info import WORKER_MODE
from .models import SubmitRequest, TaskCreateRequest
from .monitor import LivenessMonitor
from .output import output, log_config
from .tools import ToolHandler, PARSE_ERROR, is_notification

# How often a long wait checks whether its client is still there
DISCONNECT_CHECK_INTERVAL = 0.5


class ClientDisconnected(Exception):
    pass


async def run_until_disconnect(request: Request, operation: Awaitable[Any]) -> Any:
    """Await operation, cancelling it as soon as the client goes away"""
    task = asyncio.ensure_future(operation)
    try:
        while True:
            done, _ = await asyncio.wait({task}, timeout=DISCONNECT_CHECK_INTERVAL)
            if done:
                return task.result()
            if await request.is_disconnected():
                output.info(f"Client disconnected from {request.url.path}, abandoning wait")
                raise ClientDisconnected()
    finally:
        if not task.done():
            task.cancel()


def get_dispatcher(request: Request) -> Dispatcher:
    return request.app.state.dispatcher


def get_tools(request: Request) -> ToolHandler:
    return request.app.state.tools


router = APIRouter()


@router.get("/")
def get_root(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Root endpoint - API information."""
    settings = dispatcher.settings
    return {
        "message": settings.name + " API",
        "version": settings.version,
        "settings": settings.to_dict(),
        "endpoints": {
            "docs": "/docs",
            "rpc": "/mcp",
            "stats": "/api/stats",
            "workers": "/api/workers/",
            "tasks": "/api/tasks/",
            "jobs": "/api/jobs/"
        }
    }


@router.get("/api/stats", tags=["stats"])
def get_stats(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Counts of workers, tasks by status, queue depth and remaining prompts."""
    return dispatcher.store.stats(dispatcher.settings.liveness_window)


# Worker endpoints
@router.post("/api/workers", tags=["workers"])
def create_worker(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Register a new worker."""
    return dispatcher.create_worker()


@router.get("/api/workers", tags=["workers"])
def get_workers(dispatcher: Dispatcher = Depends(get_dispatcher)):
    workers = dispatcher.store.list_workers()
    return {"workers": workers, "count": len(workers)}


@router.get("/api/workers/{worker_id}", tags=["workers"])
def get_worker(worker_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)):
    return dispatcher.store.get_worker(worker_id)


@router.post("/api/workers/{worker_id}/poll", tags=["workers"])
async def poll_worker(worker_id: str, request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Long-poll for a task; returns a task or an idle result after the timeout."""
    return await run_until_disconnect(request, dispatcher.poll(worker_id))


@router.post("/api/workers/{worker_id}/submit", tags=["workers"])
def submit_task(worker_id: str, body: SubmitRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Submit the response for a task."""
    return dispatcher.submit(worker_id, body.task_id, body.response)


# Task endpoints
# create_task is async: waking pollers must happen on the event loop thread
@router.post("/api/tasks", tags=["tasks"])
async def create_task(body: TaskCreateRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Enqueue a task by hand."""
    try:
        return dispatcher.enqueue_task(body.prompt).to_dict()
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))


@router.get("/api/tasks", tags=["tasks"])
def get_tasks(status: Optional[str] = None, dispatcher: Dispatcher = Depends(get_dispatcher)):
    tasks = dispatcher.store.list_tasks(status)
    return {"tasks": tasks, "count": len(tasks), "queue": dispatcher.store.queued_task_ids()}


@router.get("/api/tasks/{task_id}", tags=["tasks"])
def get_task(task_id: str, dispatcher: Dispatcher = Depends(get_dispatcher)):
    return dispatcher.store.get_task(task_id)


# Job endpoints
@router.post("/api/jobs", tags=["jobs"])
def create_job(dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Create a job; its status stays running."""
    return dispatcher.create_job()


@router.get("/api/jobs/{job_id}/status", tags=["jobs"])
async def get_job_status(job_id: str, request: Request, dispatcher: Dispatcher = Depends(get_dispatcher)):
    """Wait the configured timeout and report the job status."""
    return await run_until_disconnect(request, dispatcher.get_job_status(job_id))


# JSON-RPC tool surface
@router.post("/mcp", tags=["rpc"])
async def rpc(request: Request, tools: ToolHandler = Depends(get_tools)):
    try:
        body = await request.json()
    except ValueError:
        return JSONResponse(ToolHandler._error_response(None, PARSE_ERROR, "Parse error"))
    if is_notification(body):
        # Accepted at once; the call itself runs after the response is sent
        return Response(status_code=202, background=BackgroundTask(tools.handle_request, body))
    response = await run_until_disconnect(request, tools.handle_request(body))
    return JSONResponse(response)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    output.error(f"Validation error for {request.method} {request.url}: {exc.errors()}")

    # Drop 'ctx', it may hold objects that are not JSON serializable
    cleaned_errors = [
        {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "input": error.get("input")
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=422, content={"detail": cleaned_errors})


async def not_found_handler(request: Request, exc: NotFoundError):
    output.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=404, content={"error": exc.message})


async def disconnected_handler(request: Request, exc: ClientDisconnected):
    # Nobody is listening; the status only shows up in the access log
    return Response(status_code=499)


async def unexpected_exception_handler(request: Request, exc: Exception):
    output.error(f"Unhandled error for {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app(dispatcher: Optional[Dispatcher] = None, start_monitor: Optional[bool] = None) -> FastAPI:
    """Build the FastAPI app around a dispatcher.

    The liveness monitor runs for the app's lifetime; by default only in
    worker mode.
    """
    dispatcher = dispatcher or Dispatcher()
    settings = dispatcher.settings
    monitor = LivenessMonitor(dispatcher)
    if start_monitor is None:
        start_monitor = settings.mode == WORKER_MODE

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Handle application startup and shutdown."""
        output.info(f"{settings.name} starting in {settings.mode} mode with {settings.timeout}s timeout")
        if start_monitor:
            monitor.start()

        yield

        output.info("Lifespan shutdown started...")
        await monitor.stop()
        dispatcher.store.log_summary()
        output.info("Lifespan shutdown completed")

    app = FastAPI(title=settings.name, description=settings.desc, version=settings.version, lifespan=lifespan)
    app.state.dispatcher = dispatcher
    app.state.monitor = monitor
    app.state.tools = ToolHandler(dispatcher)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(ClientDisconnected, disconnected_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def run_server(dispatcher: Optional[Dispatcher] = None, host: Optional[str] = None, port: Optional[int] = None):
    """Run the dispatcher HTTP server until interrupted"""
    app = create_app(dispatcher)
    settings = app.state.dispatcher.settings
    uvicorn.run(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_config=log_config,
    )
