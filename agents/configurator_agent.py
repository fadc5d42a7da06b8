from typing import Any, List

from core.base_agent import LLMAgent, ConfigurationAdvisor
from core.errors import ConfigurationFailure
from core.observability import get_logger
from core.types import AgentConfig, AutoAgentSetup
from core.utils import parse_json_response

logger = get_logger(__name__)


def validate_agent_setup(data: Any, max_agents: int) -> AutoAgentSetup:
    """
    Turn the advisor's JSON into an AutoAgentSetup.

    Raises ConfigurationFailure if the structure is wrong; temperatures are
    clamped rather than rejected.
    """
    if not isinstance(data, dict):
        raise ConfigurationFailure("Agent configuration must be a JSON object")

    count = data.get("agentCount", data.get("agent_count"))
    agents = data.get("agents")
    if isinstance(count, bool) or not isinstance(count, (int, float)) or not isinstance(agents, list):
        raise ConfigurationFailure("Agent configuration is missing agentCount or agents")
    if int(count) != len(agents):
        raise ConfigurationFailure(
            f"Agent configuration declares {count} agents but lists {len(agents)}"
        )
    if not 1 <= len(agents) <= max_agents:
        raise ConfigurationFailure(f"Agent count {len(agents)} is outside 1..{max_agents}")

    configs: List[AgentConfig] = []
    for index, agent in enumerate(agents):
        if (
            not isinstance(agent, dict)
            or not isinstance(agent.get("name"), str)
            or not isinstance(agent.get("focus"), str)
            or isinstance(agent.get("temperature"), bool)
            or not isinstance(agent.get("temperature"), (int, float))
        ):
            raise ConfigurationFailure(f"Invalid agent structure for agent {index + 1}")
        try:
            configs.append(AgentConfig.from_dict(agent))
        except ValueError as e:
            raise ConfigurationFailure(f"Invalid agent {index + 1}: {e}") from e

    return AutoAgentSetup(agent_count=len(configs), agents=configs)


class ConfiguratorAgent(LLMAgent, ConfigurationAdvisor):
    """Asks the LLM how many agents a topic deserves and what each should focus on."""

    def __init__(self, llm_client: Any, model: str, max_agents: int = 10, temperature: float = 0.4):
        super().__init__(llm_client, model)
        self.max_agents = max_agents
        self.temperature = temperature

    def _prompt(self, topic: str) -> str:
        return f"""Based on the complexity and nature of the research topic "{topic}", determine an optimal number of research agents (between 2 and {self.max_agents}) and define their configurations.
For each agent, provide a unique name, a specific research focus (a concise instruction for their research task related to the main topic), and a temperature (a float between 0.0 and 1.0, where higher means more creative/diverse).
The agent focuses should be complementary and cover different facets of the topic.

Return ONLY a JSON object of the form:
{{"agentCount": 3, "agents": [{{"name": "Clinical Applications Agent", "focus": "Investigate ...", "temperature": 0.5}}]}}"""

    async def propose_agents(self, topic: str) -> AutoAgentSetup:
        messages = [
            {"role": "system", "content": "You design research teams. You answer with JSON only."},
            {"role": "user", "content": self._prompt(topic)},
        ]
        try:
            content = await self._call_llm(messages, temperature=self.temperature)
            data = parse_json_response(content)
        except Exception as e:
            raise ConfigurationFailure(f"Agent configuration call failed: {e}") from e

        setup = validate_agent_setup(data, self.max_agents)
        logger.info("agents_proposed", count=setup.agent_count)
        return setup
