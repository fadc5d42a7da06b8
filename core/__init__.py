from .types import (
    TaskStatus,
    AgentState,
    AgentMode,
    ResponseType,
    Source,
    AgentConfig,
    AutoAgentSetup,
    AgentOutcome,
    AgentRun,
    AgentStatus,
    ResearchRequest,
    ResearchTask,
)
from .errors import (
    OrchestratorError,
    CapacityExceeded,
    TaskNotFound,
    ConfigurationFailure,
    SynthesisFailure,
    AgentFailure,
)
from .base_agent import ResearchExecutor, ConfigurationAdvisor, Synthesizer, LLMAgent
from .sources import dedupe_sources, remap_citations, rewrite_citations
from .progress import ProgressBus, ProgressEvent, ProgressListener, ProgressTracker
from .llm import LLMProvider, create_llm_client, get_default_model

__version__ = "1.1.0"

__all__ = [
    "TaskStatus",
    "AgentState",
    "AgentMode",
    "ResponseType",
    "Source",
    "AgentConfig",
    "AutoAgentSetup",
    "AgentOutcome",
    "AgentRun",
    "AgentStatus",
    "ResearchRequest",
    "ResearchTask",
    "OrchestratorError",
    "CapacityExceeded",
    "TaskNotFound",
    "ConfigurationFailure",
    "SynthesisFailure",
    "AgentFailure",
    "ResearchExecutor",
    "ConfigurationAdvisor",
    "Synthesizer",
    "LLMAgent",
    "dedupe_sources",
    "remap_citations",
    "rewrite_citations",
    "ProgressBus",
    "ProgressEvent",
    "ProgressListener",
    "ProgressTracker",
    "LLMProvider",
    "create_llm_client",
    "get_default_model",
]
