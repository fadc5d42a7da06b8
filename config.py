"""
Configuration for the Deep Research Orchestrator.

Environment Variables:
    ANTHROPIC_API_KEY         - Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY            - Fallback: Your OpenAI API key (if no Anthropic key)
    TAVILY_API_KEY            - Optional: Tavily API key for web search
    LLM_MODEL                 - Optional: LLM model (default depends on provider)
    LLM_PROVIDER              - Optional: LLM provider (default: auto-detected)
    MAX_CONCURRENT_TASKS      - Optional: global ceiling on in-flight tasks (default: 10)
    MAX_AGENTS_MANUAL         - Optional: manual-mode agent cap (default: 10)
    DEEP_MODE_AGENTS          - Optional: agents spawned in deep mode (default: 100)
    DEFAULT_AGENT_COUNT       - Optional: manual default / auto fallback size (default: 3)
    AGENT_TIMEOUT_SECONDS     - Optional: per-agent timeout, 0 disables (default: 120)
    MAX_PARALLEL_AGENTS       - Optional: per-task agent cap, 0 = unbounded (default: 0)
    CLEANUP_INTERVAL_SECONDS  - Optional: retention sweep interval (default: 3600)
    TASK_RETENTION_SECONDS    - Optional: how long finished tasks stay queryable (default: 86400)
    ARTIFACTS_DIR             - Optional: directory for finished task documents
    LOG_LEVEL / LOG_JSON      - Optional: logging level and JSON output

Create a .env file in this directory with:

    ANTHROPIC_API_KEY=sk-ant-your-key-here
    TAVILY_API_KEY=tvly-your-key-here
    MAX_CONCURRENT_TASKS=10
"""

import os
from dataclasses import dataclass
from typing import List, Optional


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Application configuration."""

    # LLM Settings (Claude/Anthropic is primary)
    anthropic_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None  # Fallback
    tavily_api_key: Optional[str] = None
    llm_model: str = "claude-sonnet-4-20250514"
    llm_provider: str = "anthropic"

    # Admission and fan-out
    max_concurrent_tasks: int = 10
    max_agents_manual: int = 10
    deep_mode_agents: int = 100
    default_agent_count: int = 3
    agent_timeout_seconds: float = 120
    max_parallel_agents: int = 0

    # Retention
    cleanup_interval_seconds: float = 60 * 60
    retention_seconds: float = 24 * 60 * 60
    artifacts_dir: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    allowed_origins: str = "*"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        # Auto-detect provider based on available keys
        anthropic_key = os.getenv("ANTHROPIC_API_KEY")
        openai_key = os.getenv("OPENAI_API_KEY")

        if anthropic_key or not openai_key:
            provider = "anthropic"
            default_model = "claude-sonnet-4-20250514"
        else:
            provider = "openai"
            default_model = "gpt-4o-mini"

        return cls(
            anthropic_api_key=anthropic_key,
            openai_api_key=openai_key,
            tavily_api_key=os.getenv("TAVILY_API_KEY"),
            llm_model=os.getenv("LLM_MODEL", default_model),
            llm_provider=os.getenv("LLM_PROVIDER", provider),
            max_concurrent_tasks=int(os.getenv("MAX_CONCURRENT_TASKS", "10")),
            max_agents_manual=int(os.getenv("MAX_AGENTS_MANUAL", "10")),
            deep_mode_agents=int(os.getenv("DEEP_MODE_AGENTS", "100")),
            default_agent_count=int(os.getenv("DEFAULT_AGENT_COUNT", "3")),
            agent_timeout_seconds=float(os.getenv("AGENT_TIMEOUT_SECONDS", "120")),
            max_parallel_agents=int(os.getenv("MAX_PARALLEL_AGENTS", "0")),
            cleanup_interval_seconds=float(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600")),
            retention_seconds=float(os.getenv("TASK_RETENTION_SECONDS", "86400")),
            artifacts_dir=os.getenv("ARTIFACTS_DIR") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_json=_env_bool("LOG_JSON"),
            api_host=os.getenv("API_HOST", "0.0.0.0"),
            api_port=int(os.getenv("API_PORT", "8000")),
            allowed_origins=os.getenv("ALLOWED_ORIGINS", "*"),
        )

    def validate(self) -> bool:
        """Check if required configuration is present."""
        return bool(self.anthropic_api_key or self.openai_api_key)

    def validate_limits(self) -> None:
        """Raise ValueError for limits that would make the orchestrator unusable."""
        for name in ("max_concurrent_tasks", "max_agents_manual", "deep_mode_agents", "default_agent_count"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        if self.retention_seconds < 0 or self.cleanup_interval_seconds <= 0:
            raise ValueError("Retention must be >= 0 and the cleanup interval > 0")

    def get_api_key(self) -> Optional[str]:
        """Get the appropriate API key based on provider."""
        if self.llm_provider == "anthropic":
            return self.anthropic_api_key
        return self.openai_api_key

    def origins(self) -> List[str]:
        return [o.strip() for o in self.allowed_origins.split(",") if o.strip()]
