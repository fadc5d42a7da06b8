#!/usr/bin/env python3
"""
Demo script for the Deep Research Orchestrator.

Runs one research task through the task registry without the API server
and prints progress as agents finish.

Usage:
    python demo.py "What are the latest developments in quantum computing?"
    python demo.py --mock --agents 5 "Explain the impact of AI on healthcare"
    python demo.py --mock --mode deep "Future of urban farming"
"""

import argparse
import asyncio
import os
from datetime import datetime
from pathlib import Path

from dotenv import load_dotenv

from agents.mock_agents import MockConfigurationAdvisor, MockResearchExecutor, MockSynthesizer
from config import Config
from core.observability import setup_logging
from core.types import ResearchRequest, ResponseType
from orchestrator.registry import TaskRegistry


def build_mock_registry(config: Config) -> TaskRegistry:
    """Registry wired to offline collaborators; one profile fails on purpose."""
    executor = MockResearchExecutor(
        sources_by_agent={
            "Analyst Agent": ["https://example.com/overview", "https://example.org/stats"],
            "Innovator Agent": ["https://example.org/stats", "https://example.net/trends"],
        },
        failures={"Critical Agent": "search backend returned no results"},
        default_delay=0.2,
    )
    return TaskRegistry.from_config(
        config,
        executor=executor,
        synthesizer=MockSynthesizer(),
        advisor=MockConfigurationAdvisor(count=4),
    )


async def run_demo(topic: str, use_mock: bool, mode: str, agents: int, response_type: str):
    print("\n" + "=" * 60)
    print("DEEP RESEARCH ORCHESTRATOR DEMO")
    print("=" * 60)
    print(f"\nTopic: {topic}\n")

    config = Config.from_env()
    if mode == "deep" and use_mock:
        config.deep_mode_agents = min(config.deep_mode_agents, 12)

    if use_mock or not config.validate():
        print("Using mock collaborators (no API key found or --mock given)\n")
        registry = build_mock_registry(config)
    else:
        from api.main import build_registry

        print(f"Using {config.llm_provider} ({config.llm_model})\n")
        registry = build_registry(config)

    request = ResearchRequest(
        topic=topic,
        num_agents=agents,
        auto_agents=mode == "auto",
        deep_mode=mode == "deep",
        response_type=ResponseType(response_type),
    )

    start_time = datetime.now()
    task_id = registry.submit(request)
    print(f"Task {task_id} started in {request.mode.value} mode\n")

    last_line = None
    while True:
        status = registry.get_task_status(task_id)
        done = sum(1 for a in status["agent_statuses"] if a["status"] in ("completed", "error"))
        line = (
            f"   [{status['status']:>12}] {status['progress']:5.1f}%  "
            f"agents finished: {done}/{len(status['agent_statuses'])}"
        )
        if "estimated_time_remaining" in status:
            line += f"  ~{status['estimated_time_remaining']:.0f}s left"
        if line != last_line:
            print(line)
            last_line = line
        if status["status"] in ("completed", "error"):
            break
        await asyncio.sleep(0.1)

    elapsed = (datetime.now() - start_time).total_seconds()
    print(f"\nFinished in {elapsed:.1f}s\n")
    print("-" * 60)

    for agent in status["agent_statuses"]:
        print(f"   {agent['status']:>10}  {agent['name']}: {agent.get('message', '')}")
    print()

    if status["status"] == "completed":
        print(status["final_report"])
        if status.get("sources"):
            print("\nSources:")
            for source in status["sources"]:
                print(f"   [{source['id']}] {source['title']} - {source['uri']}")
    else:
        print(f"Error: {status.get('error')}")

    print("\n" + "=" * 60 + "\n")


def main():
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    parser = argparse.ArgumentParser(description="Deep Research Orchestrator Demo")
    parser.add_argument("topic", nargs="?", default="What are the latest developments in artificial intelligence?",
                        help="Research topic to investigate")
    parser.add_argument("--mock", action="store_true", help="Use mock collaborators (no API key needed)")
    parser.add_argument("--mode", choices=["manual", "auto", "deep"], default="manual")
    parser.add_argument("--agents", type=int, default=3, help="Agent count in manual mode")
    parser.add_argument("--response-type", default="Report", choices=[t.value for t in ResponseType])
    args = parser.parse_args()

    setup_logging(os.getenv("LOG_LEVEL", "WARNING"))
    asyncio.run(run_demo(args.topic, args.mock, args.mode, args.agents, args.response_type))


if __name__ == "__main__":
    main()
