"""
Keyword ranking used when no template embeddings are available.

Score = fraction of query tokens found as substrings of the template's
searchable text. Templates that match no token are left out entirely.
"""

from typing import Iterable, List, Optional

from ..models import ScoredTemplate, TemplateFilters, TemplateRecord


def tokenize_query(query: str) -> List[str]:
    """Split on whitespace, casefolded, dropping empty tokens."""
    return [token for token in query.casefold().split() if token]


def build_searchable_text(record: TemplateRecord) -> str:
    return " ".join([
        record.name,
        record.description,
        record.category,
        record.framework,
        record.language,
        *record.tags,
    ]).casefold()


def keyword_match_score(query: str, record: TemplateRecord) -> float:
    """
    Simple keyword matching score.

    Returns:
        Match score in [0, 1]; 0 for a query without tokens
    """
    tokens = tokenize_query(query)
    if not tokens:
        return 0.0

    searchable_text = build_searchable_text(record)
    matches = sum(1 for token in tokens if token in searchable_text)
    return matches / len(tokens)


def rank_templates(
    query: str,
    records: Iterable[TemplateRecord],
    filters: Optional[TemplateFilters] = None,
    limit: int = 5
) -> List[ScoredTemplate]:
    """
    Rank records by keyword score, highest first.

    Ties keep the order of ``records``.
    """
    scores: List[ScoredTemplate] = []

    for record in records:
        if filters is not None and not filters.matches(record):
            continue
        score = keyword_match_score(query, record)
        if score > 0:
            scores.append(ScoredTemplate(record.id, score))

    scores.sort(key=lambda item: item.score, reverse=True)
    return scores[:limit]
