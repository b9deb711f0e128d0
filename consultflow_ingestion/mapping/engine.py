"""
Mapping engine: source account codes to chart-of-accounts codes.

Pure and deterministic, ZERO I/O.  Resolution order for a source code:

1. Exact: the code is itself a leaf account code in the chart.
2. Learned: the company mapped this code before and the target still
   exists as a leaf account.
3. Fuzzy: the row's name scores at least ``MATCH_THRESHOLD`` against a leaf
   account (see ``score_candidate``).

Parent accounts are never auto-resolution targets: entries posted to them
are dropped on save, so silently mapping onto one would lose the amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from consultflow_kernel.domain.chart_of_accounts import parent_account_codes
from consultflow_kernel.domain.dtos import Account

from consultflow_ingestion.domain.types import (
    MappingProposal,
    RawAccountRow,
    ResolutionMethod,
    RowResolution,
)

EXACT_CODE_WEIGHT = 100
EXACT_NAME_WEIGHT = 80
NAME_CONTAINS_WEIGHT = 40
QUERY_CONTAINS_WEIGHT = 20
MATCH_THRESHOLD = 40


@dataclass(frozen=True)
class FuzzyMatch:
    account_code: str
    score: int


def score_candidate(query: str, account: Account) -> int:
    """
    Score one account against a free-text query (case-insensitive).

    +100 query equals the account code, +80 query equals the account name,
    +40 account name contains the query, +20 query contains the account name.
    """
    q = query.strip().lower()
    if not q:
        return 0
    code = (account.account_code or "").strip().lower()
    name = (account.account_name or "").strip().lower()
    score = 0
    if code == q:
        score += EXACT_CODE_WEIGHT
    if name:
        if name == q:
            score += EXACT_NAME_WEIGHT
        if q in name:
            score += NAME_CONTAINS_WEIGHT
        if name in q:
            score += QUERY_CONTAINS_WEIGHT
    return score


def fuzzy_match(query: str, candidates: Sequence[Account]) -> FuzzyMatch | None:
    """
    Best-scoring candidate, or None below ``MATCH_THRESHOLD``.

    Ties keep the earliest candidate.
    """
    best: FuzzyMatch | None = None
    for account in candidates:
        score = score_candidate(query, account)
        if best is None or score > best.score:
            best = FuzzyMatch(account.account_code, score)
    if best is None or best.score < MATCH_THRESHOLD:
        return None
    return best


def resolve_row(
    row: RawAccountRow,
    accounts: Sequence[Account],
    learned: Mapping[str, str],
    parent_codes: frozenset[str] | None = None,
) -> RowResolution:
    """Resolve one row by exact, learned, then fuzzy match."""
    if parent_codes is None:
        parent_codes = parent_account_codes(accounts)
    leaves = [a for a in accounts if a.account_code and a.account_code not in parent_codes]
    leaf_codes = {a.account_code for a in leaves}
    source = row.account_code

    if source in leaf_codes:
        return RowResolution(source, source, ResolutionMethod.EXACT, EXACT_CODE_WEIGHT, row.name)

    target = learned.get(source)
    if target is not None and target in leaf_codes:
        return RowResolution(source, target, ResolutionMethod.LEARNED, 0, row.name)

    if row.name:
        match = fuzzy_match(row.name, leaves)
        if match is not None:
            return RowResolution(
                source, match.account_code, ResolutionMethod.FUZZY, match.score, row.name
            )

    return RowResolution(source, None, ResolutionMethod.UNRESOLVED, 0, row.name)


def propose_mapping(
    rows: Sequence[RawAccountRow],
    accounts: Sequence[Account],
    learned: Mapping[str, str] | None = None,
    overrides: Mapping[str, str] | None = None,
) -> MappingProposal:
    """
    Resolve every distinct source code of an upload.

    ``overrides`` are the user's manual picks and win over everything; a
    pick that is not a leaf account leaves the code unresolved.  Codes whose
    rows are all zero never block a save and are not reported unresolved.
    """
    learned = learned or {}
    overrides = overrides or {}
    parents = parent_account_codes(accounts)
    leaf_codes = {a.account_code for a in accounts if a.account_code not in parents}

    first_rows: dict[str, RawAccountRow] = {}
    has_amount: dict[str, bool] = {}
    for row in rows:
        first_rows.setdefault(row.account_code, row)
        has_amount[row.account_code] = has_amount.get(row.account_code, False) or not row.is_zero

    resolutions: list[RowResolution] = []
    unresolved: list[str] = []
    for source, row in first_rows.items():
        if source in overrides:
            target = overrides[source]
            if target in leaf_codes:
                resolution = RowResolution(source, target, ResolutionMethod.MANUAL, 0, row.name)
            else:
                resolution = RowResolution(source, None, ResolutionMethod.UNRESOLVED, 0, row.name)
        else:
            resolution = resolve_row(row, accounts, learned, parents)
        resolutions.append(resolution)
        if not resolution.resolved and has_amount[source]:
            unresolved.append(source)

    return MappingProposal(resolutions=tuple(resolutions), unresolved=tuple(unresolved))
