"""Account mapping: exact, learned and fuzzy resolution of source codes."""

from consultflow_ingestion.mapping.engine import (
    EXACT_CODE_WEIGHT,
    EXACT_NAME_WEIGHT,
    MATCH_THRESHOLD,
    NAME_CONTAINS_WEIGHT,
    QUERY_CONTAINS_WEIGHT,
    fuzzy_match,
    propose_mapping,
    resolve_row,
    score_candidate,
)

__all__ = [
    "EXACT_CODE_WEIGHT",
    "EXACT_NAME_WEIGHT",
    "MATCH_THRESHOLD",
    "NAME_CONTAINS_WEIGHT",
    "QUERY_CONTAINS_WEIGHT",
    "fuzzy_match",
    "propose_mapping",
    "resolve_row",
    "score_candidate",
]
