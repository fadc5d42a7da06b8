from typing import Any, List

from core.base_agent import LLMAgent, Synthesizer
from core.errors import SynthesisFailure
from core.profiles import NO_RESEARCH_PLACEHOLDER, RESPONSE_TYPE_PROMPTS
from core.types import AgentRun, ResponseType, Source


def citation_instructions(
    sources: List[Source],
    include_citations: bool,
    limit_citations_to_three: bool,
) -> str:
    """Citation rules appended to the synthesis prompt."""
    if not include_citations:
        return ""
    if not sources:
        return "Citations were requested, but no sources were found or processed from the agents."

    source_list = "\n".join(f"{s.id}. {s.title or s.uri}" for s in sources)
    limit_rule = (
        "\n3. For any single piece of information or claim, cite a maximum of three (3) distinct sources."
        if limit_citations_to_three
        else ""
    )
    return f"""When citing information, use the format [number] corresponding to the source in this list:
{source_list}

Key Citation Rules:
1. Ensure claims are supported by these sources where appropriate.
2. If multiple sources support a single point, list them as separate bracketed numbers, for example: [1] [2]. Do NOT combine them like [1, 2].{limit_rule}
4. Only cite sources for specific information that requires attribution."""


class SynthesisAgent(LLMAgent, Synthesizer):
    """Synthesis Engine: merges agent findings into the final Markdown document."""

    def __init__(self, llm_client: Any, model: str, temperature: float = 0.5, max_tokens: int = 8192):
        super().__init__(llm_client, model, max_tokens=max_tokens)
        self.temperature = temperature

    def build_prompt(
        self,
        topic: str,
        findings: List[AgentRun],
        sources: List[Source],
        response_type: ResponseType,
        include_citations: bool,
        limit_citations_to_three: bool,
    ) -> str:
        summaries = "\n\n".join(
            f"--- Research from {run.config.name} ---\n{run.outcome.summary}"
            for run in findings
            if run.outcome.ok and run.outcome.summary.strip()
        )
        if not summaries:
            summaries = NO_RESEARCH_PLACEHOLDER

        kind = response_type.value.lower()
        return f"""Original User Query: "{topic}"

You have received research summaries from multiple AI agents. Synthesize them into a single, coherent document IN MARKDOWN FORMAT.

{RESPONSE_TYPE_PROMPTS[response_type]}

{citation_instructions(sources, include_citations, limit_citations_to_three)}

--- Agent Research Summaries ---
{summaries}
--- End of Agent Research Summaries ---

Now, generate the final {kind} based on all the provided information.
If information is contradictory, acknowledge it. Do not make up information beyond what the summaries provide.
If no research was gathered, say so plainly and outline what is known about the topic at a high level.
Output ONLY the final {kind} content in Markdown format."""

    async def synthesize(
        self,
        topic: str,
        findings: List[AgentRun],
        sources: List[Source],
        response_type: ResponseType = ResponseType.REPORT,
        include_citations: bool = True,
        limit_citations_to_three: bool = True,
    ) -> str:
        prompt = self.build_prompt(
            topic, findings, sources, response_type, include_citations, limit_citations_to_three
        )
        messages = [
            {"role": "system", "content": "You are the Synthesis Engine of a multi-agent research team."},
            {"role": "user", "content": prompt},
        ]
        try:
            report = await self._call_llm(messages, temperature=self.temperature)
        except Exception as e:
            raise SynthesisFailure(f"Could not synthesize the final {response_type.value.lower()}: {e}") from e

        if not report.strip():
            raise SynthesisFailure("Synthesis returned an empty document")
        return report
