"""Error taxonomy for the research orchestrator."""


class OrchestratorError(Exception):
    """Base exception for orchestrator errors."""

    pass


class CapacityExceeded(OrchestratorError):
    """Raised at submission when the concurrency ceiling is reached."""

    def __init__(self, ceiling: int):
        self.ceiling = ceiling
        super().__init__(
            f"Maximum number of concurrent tasks ({ceiling}) reached. Please try again later."
        )


class TaskNotFound(OrchestratorError):
    """Raised when a task id is unknown or has already been swept."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class ConfigurationFailure(OrchestratorError):
    """Raised by the configuration advisor; always caught by the registry."""

    pass


class SynthesisFailure(OrchestratorError):
    """Raised when the final document cannot be produced. Fails the task."""

    pass


class AgentFailure(OrchestratorError):
    """Infrastructure fault inside one agent; scoped to that agent."""

    pass
