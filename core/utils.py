import json
import re
from typing import Any


def clean_json_response(content: str) -> str:
    """
    Clean JSON response from LLM by removing markdown code blocks.

    Args:
        content: The raw string response from LLM

    Returns:
        Cleaned string containing just the JSON content
    """
    # Remove markdown code blocks
    pattern = r"```(?:json)?\s*(.*?)\s*```"
    match = re.search(pattern, content, re.DOTALL)
    if match:
        content = match.group(1)

    content = content.strip()
    # Some models leak a "LookupError:" prefix in front of objects
    content = re.sub(r"\s*LookupError:\s*\{", "{", content)
    content = content.replace("LookupError:", "")
    # Stray word after a number, e.g. `"temperature": 0.5 junk"` before a closing brace
    content = re.sub(r"([0-9.]+)\s+[A-Za-z0-9_'-]+\"\s*(\r?\n(?=\s*[},]))", r"\1\2", content)
    return content


def parse_json_response(content: str) -> Any:
    """Parse an LLM reply as JSON after cleaning. Raises ValueError."""
    if content is None:
        raise ValueError("Empty response")
    try:
        return json.loads(clean_json_response(content))
    except json.JSONDecodeError as e:
        raise ValueError(f"Response was not valid JSON: {e}") from e
