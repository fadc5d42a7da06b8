from .research_agent import ResearchAgent
from .configurator_agent import ConfiguratorAgent, validate_agent_setup
from .synthesis_agent import SynthesisAgent
from .mock_agents import MockResearchExecutor, MockConfigurationAdvisor, MockSynthesizer

__all__ = [
    "ResearchAgent",
    "ConfiguratorAgent",
    "validate_agent_setup",
    "SynthesisAgent",
    "MockResearchExecutor",
    "MockConfigurationAdvisor",
    "MockSynthesizer",
]
