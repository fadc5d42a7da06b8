from enum import Enum
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime
import re
import uuid


class TaskStatus(Enum):
    STARTED = "started"
    CONFIGURING = "configuring"
    RESEARCHING = "researching"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.ERROR)


class AgentState(Enum):
    PENDING = "pending"
    CONFIGURING = "configuring"
    RESEARCHING = "researching"
    SYNTHESIZING = "synthesizing"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (AgentState.COMPLETED, AgentState.ERROR)


class ResponseType(Enum):
    REPORT = "Report"
    ARTICLE = "Article"
    RESEARCH_PAPER = "Research Paper"


class AgentMode(Enum):
    MANUAL = "manual"
    AUTO = "auto"
    DEEP = "deep"


def clamp_temperature(value: Any) -> float:
    """Coerce a temperature into [0.0, 1.0]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Temperature must be a number, got {value!r}")
    if number != number:  # NaN
        raise ValueError("Temperature must not be NaN")
    return min(1.0, max(0.0, number))


@dataclass
class Source:
    """A cited source. The id is only meaningful within one list."""
    id: int
    uri: str
    title: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "uri": self.uri,
            "title": self.title,
        }


@dataclass
class AgentConfig:
    """Name, focus instruction and creativity of one research agent."""
    name: str
    focus: str
    temperature: float = 0.5

    def __post_init__(self):
        self.name = (self.name or "").strip()
        self.focus = (self.focus or "").strip()
        if not self.name:
            raise ValueError("Agent name is required")
        if not self.focus:
            raise ValueError(f"Agent '{self.name}' needs a focus instruction")
        self.temperature = clamp_temperature(self.temperature)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentConfig":
        return cls(
            name=data.get("name", ""),
            focus=data.get("focus", ""),
            temperature=data.get("temperature", 0.5),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "focus": self.focus,
            "temperature": self.temperature,
        }


@dataclass
class AutoAgentSetup:
    """Agent setup proposed by the configuration advisor."""
    agent_count: int
    agents: List[AgentConfig] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "agent_count": self.agent_count,
            "agents": [a.to_dict() for a in self.agents],
        }


@dataclass
class AgentOutcome:
    """
    Tagged result of one agent run.

    Use `AgentOutcome.success(...)` or `AgentOutcome.failure(...)`; callers
    branch on `ok`, never on the text content.
    """
    ok: bool
    summary: str = ""
    sources: List[Source] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def success(cls, summary: str, sources: Optional[List[Source]] = None) -> "AgentOutcome":
        return cls(ok=True, summary=summary, sources=list(sources or []))

    @classmethod
    def failure(cls, error: str) -> "AgentOutcome":
        return cls(ok=False, error=error or "Unknown error")


@dataclass
class AgentRun:
    """Outcome of one launched agent, as returned by the fan-out."""
    agent_id: str
    config: AgentConfig
    outcome: AgentOutcome


@dataclass
class AgentStatus:
    """Per-agent progress record kept on a task."""
    id: str
    name: str
    status: AgentState = AgentState.PENDING
    message: Optional[str] = None
    research: Optional[str] = None
    sources: Optional[List[Source]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
        }
        if self.message is not None:
            data["message"] = self.message
        if self.research is not None:
            data["research"] = self.research
        if self.sources is not None:
            data["sources"] = [s.to_dict() for s in self.sources]
        return data


def agent_status_id(name: str, index: int) -> str:
    """Build the per-task agent id from its name and position."""
    slug = re.sub(r"\s+", "-", name.strip())
    return f"{slug}-{index}"


@dataclass
class ResearchRequest:
    """What the caller asked for."""
    topic: str
    num_agents: Optional[int] = None
    auto_agents: bool = False
    deep_mode: bool = False
    response_type: ResponseType = ResponseType.REPORT
    include_citations: bool = True
    limit_citations_to_three: bool = True
    agents: List[AgentConfig] = field(default_factory=list)

    def __post_init__(self):
        self.topic = (self.topic or "").strip()
        if not self.topic:
            raise ValueError("Research topic is required and cannot be empty")
        if not isinstance(self.response_type, ResponseType):
            self.response_type = ResponseType(self.response_type)

    @property
    def mode(self) -> AgentMode:
        if self.deep_mode:
            return AgentMode.DEEP
        if self.auto_agents:
            return AgentMode.AUTO
        return AgentMode.MANUAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic": self.topic,
            "num_agents": self.num_agents,
            "auto_agents": self.auto_agents,
            "deep_mode": self.deep_mode,
            "response_type": self.response_type.value,
            "include_citations": self.include_citations,
            "limit_citations_to_three": self.limit_citations_to_three,
            "agents": [a.to_dict() for a in self.agents],
        }


@dataclass
class ResearchTask:
    """A research task and everything accumulated while processing it."""
    request: ResearchRequest
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: TaskStatus = TaskStatus.STARTED
    progress: float = 0.0
    agent_statuses: List[AgentStatus] = field(default_factory=list)
    final_report: Optional[str] = None
    sources: List[Source] = field(default_factory=list)
    error: Optional[str] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def touch(self) -> None:
        self.updated_at = datetime.now()

    def find_agent(self, agent_id: str) -> Optional[AgentStatus]:
        for status in self.agent_statuses:
            if status.id == agent_id:
                return status
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "task_id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "topic": self.request.topic,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "task_id": self.id,
            "status": self.status.value,
            "progress": self.progress,
            "request": self.request.to_dict(),
            "agent_statuses": [s.to_dict() for s in self.agent_statuses],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }
        if self.final_report is not None:
            data["final_report"] = self.final_report
        if self.status is TaskStatus.COMPLETED:
            data["sources"] = [s.to_dict() for s in self.sources]
        if self.error is not None:
            data["error"] = self.error
        return data
