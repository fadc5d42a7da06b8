"""
Static agent profiles and prompt text.

Profiles are plain value records cycled by index; nothing here is
polymorphic.
"""

from typing import List

from .types import AgentConfig, AutoAgentSetup, ResponseType


DEEP_MODE_TEMPERATURE = 1.0

AGENT_PROFILES: List[AgentConfig] = [
    AgentConfig(
        name="Analyst Agent",
        focus="Provide a factual overview, key statistics, and data points related to the research topic. Focus on objective information.",
        temperature=0.2,
    ),
    AgentConfig(
        name="Critical Agent",
        focus="Identify potential criticisms, counterarguments, challenges, and limitations concerning the research topic. Explore alternative perspectives.",
        temperature=0.7,
    ),
    AgentConfig(
        name="Innovator Agent",
        focus="Explore future implications, potential innovations, novel applications, and forward-looking trends related to the research topic.",
        temperature=0.9,
    ),
    AgentConfig(
        name="Historical Agent",
        focus="Investigate the historical background, evolution, and significant past events or developments relevant to the research topic.",
        temperature=0.3,
    ),
    AgentConfig(
        name="Ethics Agent",
        focus="Analyze the ethical considerations, societal impacts, and moral dilemmas associated with the research topic.",
        temperature=0.6,
    ),
    AgentConfig(
        name="Comparative Agent",
        focus="Compare and contrast the research topic with related concepts, similar technologies, or alternative approaches. Highlight similarities and differences.",
        temperature=0.5,
    ),
    AgentConfig(
        name="Contextual Agent",
        focus="Examine the broader context in which the research topic exists, including regulatory, economic, social, and technological factors.",
        temperature=0.4,
    ),
    AgentConfig(
        name="Data Mining Agent",
        focus="Extract specific quantitative data, statistics, and figures related to the research topic. Focus on numerical evidence.",
        temperature=0.1,
    ),
    AgentConfig(
        name="Impact Assessment Agent",
        focus="Evaluate the potential positive and negative impacts of the research topic across different sectors or demographics.",
        temperature=0.65,
    ),
    AgentConfig(
        name="Solution Seeker Agent",
        focus="If the research topic involves a problem, explore potential solutions, existing remedies, and innovative approaches to address it.",
        temperature=0.75,
    ),
]


def cycle_profiles(count: int, start: int = 0) -> List[AgentConfig]:
    """Return `count` profiles beginning at position `start`, wrapping around the table."""
    return [AGENT_PROFILES[i % len(AGENT_PROFILES)] for i in range(start, start + count)]


def default_agent_setup(count: int) -> AutoAgentSetup:
    """Fixed-size setup drawn from the profile table. Never raises."""
    agents = cycle_profiles(max(1, count))
    return AutoAgentSetup(agent_count=len(agents), agents=agents)


def deep_mode_focus(topic: str) -> str:
    return f"""You are an independent, highly creative research agent. Your main research topic is: "{topic}".
Formulate a unique and insightful sub-question related to this main topic.
Then, conduct deep research on YOUR SELF-DEFINED SUB-QUESTION.
Aim for novel perspectives and uncover less obvious information. Your output should be the research summary."""


RESPONSE_TYPE_PROMPTS = {
    ResponseType.REPORT: (
        "Synthesize the provided agent research findings into a comprehensive, objective, and "
        "well-structured report, similar in style to a detailed briefing or executive summary. "
        "Ensure clarity, factual accuracy, and logical flow. Use headings (e.g., ## Key Findings) "
        "and subheadings (e.g., ### Details) to organize content. Avoid starting the report with a "
        "generic 'Overview' heading. Use double line breaks between paragraphs."
    ),
    ResponseType.ARTICLE: (
        "Transform the provided agent research findings into a compelling news-style article. "
        "Include an engaging headline, an introductory lede, and a narrative structure suitable "
        "for a general audience. Maintain a professional journalistic tone. Use double line "
        "breaks between paragraphs."
    ),
    ResponseType.RESEARCH_PAPER: (
        "Compile the provided agent research findings into a formal academic research paper with "
        "the sections Abstract, Introduction, Related Work, Methodology (describe the multi-agent "
        "research approach, including dynamic agent configuration or deep mode if applicable), "
        "Findings and Discussion, Conclusion, and References, using Markdown headings such as "
        "## Abstract. Keep a formal, academic tone and use double line breaks between paragraphs."
    ),
}

NO_RESEARCH_PLACEHOLDER = (
    "No research data was gathered by the agents, or all agents encountered errors."
)
