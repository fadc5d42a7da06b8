import re
from typing import Dict, Iterable, List

from .types import Source


# "[3]" optionally followed by an inline "(...)" link the model may already have added
CITATION_PATTERN = re.compile(r"\[(\d+)\](?:[^\S\r\n]*\([^)]*\))?")


def dedupe_sources(sources: Iterable[Source]) -> List[Source]:
    """
    Merge sources reported by several agents.

    The first occurrence of each URI wins and is renumbered 1..N in
    first-seen order. Sources without a URI are dropped.

    Args:
        sources: Sources in the order the agents completed

    Returns:
        New Source records; the inputs are not modified
    """
    unique: Dict[str, Source] = {}
    for source in sources:
        uri = (source.uri or "").strip()
        if not uri or uri in unique:
            continue
        unique[uri] = Source(id=len(unique) + 1, uri=uri, title=source.title or uri)
    return list(unique.values())


def rewrite_citations(text: str, sources: List[Source]) -> str:
    """Turn "[n]" markers into "[n](uri)" links; unknown ids are left alone."""
    by_id = {s.id: s for s in sources if s.uri}

    def _replace(match: "re.Match[str]") -> str:
        source = by_id.get(int(match.group(1)))
        if source is None:
            return match.group(0)
        return f"[{source.id}]({source.uri})"

    return CITATION_PATTERN.sub(_replace, text or "")


# Same marker with the whitespace in front of it, so dropped markers leave no gap
_LOCAL_CITATION = re.compile(r"([^\S\r\n]*)\[(\d+)\](?:[^\S\r\n]*\([^)]*\))?")


def remap_citations(text: str, local_sources: List[Source], merged: List[Source]) -> str:
    """
    Renumber one agent's "[k]" markers to the ids of the merged source list.

    Each agent numbers its own search results from 1, so the same "[1]" from
    two agents usually means two different URIs. Markers are mapped through
    the URI; markers with no matching local source are dropped so they cannot
    be read as a citation of an unrelated merged source.
    """
    merged_ids = {s.uri: s.id for s in merged}
    mapping: Dict[int, int] = {}
    for source in local_sources:
        merged_id = merged_ids.get((source.uri or "").strip())
        if merged_id is not None:
            mapping[source.id] = merged_id

    def _replace(match: "re.Match[str]") -> str:
        merged_id = mapping.get(int(match.group(2)))
        if merged_id is None:
            return ""
        return f"{match.group(1)}[{merged_id}]"

    return _LOCAL_CITATION.sub(_replace, text or "")
