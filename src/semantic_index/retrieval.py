"""Result post-processing for semantic search.

Pure functions used by the content indexer after vector search:
- page-level deduplication of chunk hits
- query-aware snippet extraction
"""

from semantic_index.models import ScoredDocument

ELLIPSIS = "..."


def dedupe_by_page(results: list[ScoredDocument]) -> list[ScoredDocument]:
    """Keep only the most similar hit per page.

    Args:
        results: Chunk-level hits in any order

    Returns:
        One hit per page_id, sorted by descending similarity. On equal
        similarity the hit seen first is kept and keeps its relative order.
    """
    best: dict[str, ScoredDocument] = {}
    for result in results:
        current = best.get(result.page_id)
        if current is None or current.similarity < result.similarity:
            best[result.page_id] = result

    return sorted(best.values(), key=lambda r: r.similarity, reverse=True)


def generate_snippet(text: str, query: str, max_length: int = 200, step: int = 50) -> str:
    """Pick the window of `text` that mentions the most query words.

    Windows of max_length characters start every `step` characters. Each is
    scored by how many distinct lower-cased query words it contains; the first
    best window wins. The snippet is marked with "..." on any side where it
    was cut from the text.

    Example:
        >>> generate_snippet("short text", "anything")
        'short text'
    """
    if len(text) <= max_length:
        return text

    query_words = list(dict.fromkeys(query.lower().split()))
    text_lower = text.lower()

    best_position = 0
    max_matches = 0
    for position in range(0, len(text) - max_length, step):
        window = text_lower[position : position + max_length]
        matches = sum(1 for word in query_words if word in window)
        if matches > max_matches:
            max_matches = matches
            best_position = position

    snippet = text[best_position : best_position + max_length]
    if best_position > 0:
        snippet = ELLIPSIS + snippet
    if best_position + max_length < len(text):
        snippet = snippet + ELLIPSIS
    return snippet
