#!/usr/bin/env python3
"""
Run the Deep Research Orchestrator API server.

Usage:
    python run.py                    # Run on default port 8000
    python run.py --port 8080        # Run on custom port
    python run.py --reload           # Run with hot reload (dev mode)

Environment Variables (set in .env file or export):
    ANTHROPIC_API_KEY=sk-ant-...    # Primary: Your Anthropic/Claude API key
    OPENAI_API_KEY=sk-...           # Fallback: OpenAI API key (if no Anthropic)
    TAVILY_API_KEY=tvly-...         # Optional: web search for the research agents
    MAX_CONCURRENT_TASKS=10         # Optional: admission ceiling

Quick Start:
    1. Create a .env file with your API keys
    2. Install: pip install -e .
    3. Run the server: python run.py
    4. Open http://localhost:8000/docs
"""

import argparse
import os
from pathlib import Path

from dotenv import load_dotenv


def main():
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file)

    parser = argparse.ArgumentParser(description="Run the Deep Research Orchestrator API")
    parser.add_argument("--host", default=os.getenv("API_HOST", "0.0.0.0"), help="Host to bind to")
    parser.add_argument("--port", type=int, default=int(os.getenv("API_PORT", "8000")), help="Port to bind to")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args()

    from config import Config
    from core.observability import get_logger, setup_logging

    config = Config.from_env()
    setup_logging(config.log_level, config.log_json)
    logger = get_logger("run")

    if not config.validate():
        logger.warning(
            "no_llm_api_key",
            hint="Set ANTHROPIC_API_KEY (recommended) or OPENAI_API_KEY; the server cannot start without one.",
        )
    else:
        logger.info("llm_provider_selected", provider=config.llm_provider, model=config.llm_model)

    if not config.tavily_api_key:
        logger.info("web_search_disabled", hint="TAVILY_API_KEY not set; agents research without web results.")

    logger.info(
        "starting_server",
        url=f"http://{args.host}:{args.port}",
        docs=f"http://localhost:{args.port}/docs",
        ceiling=config.max_concurrent_tasks,
    )

    import uvicorn

    uvicorn.run(
        "api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    main()
