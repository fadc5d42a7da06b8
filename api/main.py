import asyncio
import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, field_validator

from config import Config
from core import __version__
from core.errors import CapacityExceeded, TaskNotFound
from core.observability import get_logger, setup_logging
from core.progress import ProgressEvent, ProgressListener
from core.types import AgentConfig, ResearchRequest as TaskRequest, ResponseType
from orchestrator.registry import TaskRegistry
from orchestrator.sweeper import RetentionSweeper

logger = get_logger(__name__)


# Request/Response Models
class AgentConfigModel(BaseModel):
    name: str = Field(..., min_length=1)
    focus: str = Field(..., min_length=1)
    temperature: float = Field(default=0.5, description="Clamped to [0.0, 1.0]")

    @field_validator("name", "focus")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value.strip()


class ResearchRequest(BaseModel):
    topic: str = Field(..., description="The topic to research")
    num_agents: Optional[int] = Field(default=None, ge=1, le=100, description="Number of agents (manual mode only)")
    auto_agents: bool = Field(default=True, description="Let the AI choose the agent setup")
    deep_mode: bool = Field(default=False, description="Spawn many self-directed creative agents")
    response_type: ResponseType = Field(default=ResponseType.REPORT)
    include_citations: bool = Field(default=True)
    limit_citations_to_three: bool = Field(default=True)
    agents: List[AgentConfigModel] = Field(default_factory=list, description="Named agents (manual mode)")

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("topic cannot be empty")
        return value.strip()

    def to_task_request(self) -> TaskRequest:
        return TaskRequest(
            topic=self.topic,
            num_agents=self.num_agents,
            auto_agents=self.auto_agents,
            deep_mode=self.deep_mode,
            response_type=self.response_type,
            include_citations=self.include_citations,
            limit_citations_to_three=self.limit_citations_to_three,
            agents=[AgentConfig(name=a.name, focus=a.focus, temperature=a.temperature) for a in self.agents],
        )


class AgentConfigurationRequest(BaseModel):
    topic: str

    @field_validator("topic")
    @classmethod
    def topic_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("topic cannot be empty")
        return value.strip()


def build_registry(config: Config) -> TaskRegistry:
    """Create the real LLM-backed collaborators (Claude preferred, OpenAI fallback)."""
    from agents.configurator_agent import ConfiguratorAgent
    from agents.research_agent import ResearchAgent
    from agents.synthesis_agent import SynthesisAgent
    from core.llm import LLMProvider, create_llm_client
    from storage.artifacts import JsonArtifactStore

    client = create_llm_client(
        LLMProvider(config.llm_provider),
        api_key=config.get_api_key(),
        model=config.llm_model,
    )
    tavily = None
    if config.tavily_api_key:
        from tavily import TavilyClient

        tavily = TavilyClient(api_key=config.tavily_api_key)

    return TaskRegistry.from_config(
        config,
        executor=ResearchAgent(client, config.llm_model, tavily_client=tavily),
        synthesizer=SynthesisAgent(client, config.llm_model),
        advisor=ConfiguratorAgent(client, config.llm_model, max_agents=config.max_agents_manual),
        artifact_store=JsonArtifactStore(config.artifacts_dir) if config.artifacts_dir else None,
    )


DISCONNECT_POLL_SECONDS = 1.0


class _QueueListener(ProgressListener):
    """Forwards one task's events into an asyncio queue, from any thread."""

    def __init__(self, task_id: str, loop: asyncio.AbstractEventLoop):
        self.task_id = task_id
        self.queue: "asyncio.Queue[ProgressEvent]" = asyncio.Queue()
        self.loop = loop

    def _forward(self, event: ProgressEvent) -> None:
        if event.task_id == self.task_id:
            self.loop.call_soon_threadsafe(self.queue.put_nowait, event)

    def on_phase_change(self, event: ProgressEvent) -> None:
        self._forward(event)

    def on_agent_update(self, event: ProgressEvent) -> None:
        self._forward(event)


async def event_stream(
    request: Request,
    registry: TaskRegistry,
    listener: _QueueListener,
    snapshot: Dict[str, Any],
    poll_seconds: float = DISCONNECT_POLL_SECONDS,
) -> AsyncIterator[str]:
    """
    Server-sent events for one task: the snapshot, then every progress event.

    Ends when the task reaches a terminal state or the client goes away;
    the listener is unsubscribed either way.
    """
    try:
        yield f"event: snapshot\ndata: {json.dumps(snapshot)}\n\n"
        if snapshot["status"] in ("completed", "error"):
            return
        while True:
            try:
                event = await asyncio.wait_for(listener.queue.get(), timeout=poll_seconds)
            except asyncio.TimeoutError:
                if await request.is_disconnected():
                    logger.info("event_stream_disconnected", task_id=listener.task_id)
                    return
                continue
            yield f"event: {event.type}\ndata: {json.dumps(event.to_dict())}\n\n"
            if event.type == "phase_change" and event.status in ("completed", "error"):
                return
    finally:
        registry.bus.unsubscribe(listener)


def _error(status_code: int, error: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error,
            "message": message,
            "status_code": status_code,
            "timestamp": datetime.now().isoformat(),
        },
    )


def get_registry(request: Request) -> TaskRegistry:
    return request.app.state.registry


def create_app(config: Optional[Config] = None, registry: Optional[TaskRegistry] = None) -> FastAPI:
    """
    Composition root for the HTTP service.

    When no registry is injected, one is built from `config` at startup.
    """
    config = config or Config.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(config.log_level, config.log_json)
        config.validate_limits()
        if app.state.registry is None:
            app.state.registry = build_registry(config)
        sweeper = RetentionSweeper(
            app.state.registry,
            interval_seconds=config.cleanup_interval_seconds,
            retention_seconds=config.retention_seconds,
        )
        sweeper.start()
        app.state.sweeper = sweeper
        logger.info("api_started", ceiling=app.state.registry.max_concurrent_tasks)
        yield
        await sweeper.stop()
        await app.state.registry.shutdown()
        logger.info("api_stopped")

    app = FastAPI(
        title="Deep Research Orchestrator",
        description="""
        Fans a research topic out to several concurrently running AI agents and
        synthesizes their findings into one cited document.

        - **Manual mode**: pick how many profiled agents to run
        - **Auto mode**: an AI configurator designs the agent team
        - **Deep mode**: many self-directed creative agents
        """,
        version=__version__,
        lifespan=lifespan,
    )
    app.state.registry = registry
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(CapacityExceeded)
    async def capacity_exceeded_handler(request: Request, exc: CapacityExceeded):
        return _error(429, "Too many requests", str(exc))

    @app.exception_handler(TaskNotFound)
    async def task_not_found_handler(request: Request, exc: TaskNotFound):
        return _error(404, "Not found", "Task not found")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "llm_provider": config.llm_provider,
            "anthropic_configured": bool(config.anthropic_api_key),
            "openai_configured": bool(config.openai_api_key),
            "tavily_configured": bool(config.tavily_api_key),
        }

    @app.get("/api")
    async def api_info():
        """API info endpoint."""
        return {
            "name": "Deep Research Orchestrator",
            "version": __version__,
            "endpoints": {
                "POST /api/research": "Start a research task",
                "GET /api/research/{task_id}": "Task status and results",
                "GET /api/research/{task_id}/events": "Server-sent progress events",
                "GET /api/tasks": "Active tasks and registry stats",
                "POST /api/configure-agents": "Preview the auto-mode agent setup",
            },
        }

    @app.post("/api/research")
    async def create_research_task(body: ResearchRequest, registry: TaskRegistry = Depends(get_registry)):
        """
        Start a new research task.

        The task runs asynchronously. Poll /api/research/{task_id} for progress.
        """
        task_id = registry.submit(body.to_task_request())
        return {"task_id": task_id, "status": "started"}

    @app.get("/api/research/{task_id}")
    async def get_task_status(task_id: str, registry: TaskRegistry = Depends(get_registry)):
        """Get the status, agent progress and (when finished) the result of a task."""
        return registry.get_task_status(task_id)

    @app.get("/api/research/{task_id}/events")
    async def stream_task_events(
        task_id: str,
        request: Request,
        registry: TaskRegistry = Depends(get_registry),
    ):
        """Stream progress events until the task finishes or the client disconnects."""
        listener = _QueueListener(task_id, asyncio.get_running_loop())
        # Subscribe before taking the snapshot so no event falls in between
        registry.bus.subscribe(listener)
        try:
            snapshot = registry.get_task_status(task_id)
        except TaskNotFound:
            registry.bus.unsubscribe(listener)
            raise

        return StreamingResponse(
            event_stream(request, registry, listener, snapshot),
            media_type="text/event-stream",
        )

    @app.get("/api/tasks")
    async def list_tasks(registry: TaskRegistry = Depends(get_registry)):
        """List active tasks with registry stats."""
        return registry.list_active_tasks()

    @app.post("/api/configure-agents")
    async def configure_agents(body: AgentConfigurationRequest, registry: TaskRegistry = Depends(get_registry)):
        """Preview the agent setup auto mode would use. Falls back to defaults, never fails."""
        setup = await registry.configure_agents(body.topic)
        return {"success": True, "agent_setup": setup.to_dict()}

    return app


app = create_app()


# Run with: uvicorn api.main:app --reload
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=app.state.config.api_host, port=app.state.config.api_port)
