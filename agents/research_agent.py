import asyncio
import json
from typing import Dict, Any, Optional, List

from core.base_agent import LLMAgent, ResearchExecutor
from core.observability import get_logger
from core.types import AgentConfig, AgentOutcome, Source

logger = get_logger(__name__)

MAX_QUERY_LENGTH = 400


class ResearchAgent(LLMAgent, ResearchExecutor):
    """
    Research Agent: one configured researcher working on a topic.

    Capabilities:
    - Web search via Tavily API (optional; without it the model answers unaided)
    - Summary written by the LLM at the agent's own temperature
    - Sources taken from the search results, never invented by the model
    """

    def __init__(
        self,
        llm_client: Any,
        model: str,
        tavily_client: Optional[Any] = None,
        max_search_results: int = 5,
        search_depth: str = "advanced",
    ):
        super().__init__(llm_client, model)
        self.tavily_client = tavily_client
        self.max_search_results = max_search_results
        self.search_depth = search_depth

    def _system_prompt(self, config: AgentConfig) -> str:
        return f"""You are {config.name}, one member of a team of independent research agents.

Your task: {config.focus}

Rules:
1. Write a concise research summary in Markdown.
2. When web search results are provided, rely on them and cite them as [n] using their numbers.
3. If the results do not cover something, say so instead of guessing.
4. Output only the summary text."""

    async def _web_search(self, query: str) -> List[Dict[str, Any]]:
        """Perform a web search using Tavily API. Returns [] without a client."""
        if not self.tavily_client:
            return []
        # TavilyClient is synchronous; keep sibling agents running meanwhile
        response = await asyncio.to_thread(
            self.tavily_client.search,
            query=query,
            search_depth=self.search_depth,
            max_results=self.max_search_results,
        )
        return [
            {
                "title": item.get("title", ""),
                "url": item.get("url", ""),
                "content": item.get("content", ""),
            }
            for item in response.get("results", [])
            if item.get("url")
        ]

    async def run(self, topic: str, config: AgentConfig) -> AgentOutcome:
        """
        Research a topic with one agent configuration.

        Args:
            topic: The overall research topic
            config: The agent's name, focus and temperature

        Returns:
            AgentOutcome.success with summary and sources, or AgentOutcome.failure
        """
        try:
            results = await self._web_search(f"{topic}: {config.focus}"[:MAX_QUERY_LENGTH])
        except Exception as e:
            logger.warning("web_search_failed", agent=config.name, error=str(e))
            results = []

        sources = [
            Source(id=i + 1, uri=r["url"], title=r["title"] or r["url"])
            for i, r in enumerate(results)
        ]

        if results:
            numbered = [{"number": s.id, **r} for s, r in zip(sources, results)]
            evidence = f"""=== WEB SEARCH RESULTS ===
{json.dumps(numbered, indent=2)}
=== END OF SEARCH RESULTS ==="""
        else:
            evidence = "No web search results are available; rely on well-established knowledge and flag uncertainty."

        messages = [
            {"role": "system", "content": self._system_prompt(config)},
            {
                "role": "user",
                "content": f"""Research topic: {topic}

{evidence}

Provide your research summary for the task described above.""",
            },
        ]

        try:
            summary = await self._call_llm(messages, temperature=config.temperature)
        except Exception as e:
            logger.warning("research_agent_failed", agent=config.name, error=str(e))
            return AgentOutcome.failure(f"Could not complete research for {config.name}: {e}")

        if not summary.strip():
            return AgentOutcome.failure(f"{config.name} returned an empty summary")

        return AgentOutcome.success(summary, sources)
