from .fanout import AgentReporter, FanOutExecutor
from .registry import TaskRegistry
from .sweeper import RetentionSweeper

__all__ = [
    "AgentReporter",
    "FanOutExecutor",
    "TaskRegistry",
    "RetentionSweeper",
]
