"""
Chart of accounts -- hierarchy building and validation.

Responsibility:
    Pure functions over a company's list of ``Account`` records: build the
    parent/child tree, validate structural integrity, and derive which
    accounts are parents (aggregation-only lines that never carry balances).

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  Called by
    ``CoAService`` before persisting and by the TB service to filter entries.

Invariants enforced:
    - ``account_code`` unique within a company.
    - ``id`` unique within a company.
    - Every ``parent_account_id`` resolves to an account in the same set.
    - Tree children are ordered by ``account_code`` (lexicographic) at every
      level so rendering is deterministic.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from dataclasses import dataclass
from typing import Iterable, Sequence

from consultflow_kernel.domain.dtos import Account


@dataclass(frozen=True)
class CoANode:
    """An account and its ordered children."""

    account: Account
    children: tuple[CoANode, ...] = ()

    def walk(self) -> Iterable[tuple[int, Account]]:
        """Depth-first (depth, account) pairs starting at this node."""
        stack: list[tuple[int, CoANode]] = [(0, self)]
        while stack:
            depth, node = stack.pop()
            yield depth, node.account
            for child in reversed(node.children):
                stack.append((depth + 1, child))


@dataclass(frozen=True)
class CoAValidationResult:
    ok: bool
    errors: tuple[str, ...] = ()


def _code_key(account: Account) -> str:
    return account.account_code or ""


def build_coa_tree(accounts: Sequence[Account]) -> tuple[CoANode, ...]:
    """
    Group accounts into a forest by ``parent_account_id``.

    Accounts whose parent is missing or unresolvable become roots.  Roots and
    children are sorted by ``account_code``.  A parent cycle cannot produce
    an infinite tree: members of a cycle with no path to a root are emitted
    as roots.
    """
    by_id = {a.id: a for a in accounts}
    children: dict[str, list[Account]] = defaultdict(list)
    roots: list[Account] = []
    for account in accounts:
        parent_id = account.parent_account_id
        if parent_id and parent_id in by_id and parent_id != account.id:
            children[parent_id].append(account)
        else:
            roots.append(account)

    placed: set[str] = set()

    def _build(account: Account) -> CoANode:
        placed.add(account.id)
        kids = sorted(
            (c for c in children.get(account.id, ()) if c.id not in placed),
            key=_code_key,
        )
        return CoANode(account=account, children=tuple(_build(k) for k in kids))

    forest = [_build(r) for r in sorted(roots, key=_code_key)]

    # Anything not reached hangs off a cycle; surface it rather than drop it
    orphans = sorted((a for a in accounts if a.id not in placed), key=_code_key)
    for account in orphans:
        if account.id not in placed:
            forest.append(_build(account))

    return tuple(sorted(forest, key=lambda n: _code_key(n.account)))


def validate_coa(accounts: Sequence[Account]) -> CoAValidationResult:
    """
    Check a chart of accounts for structural errors.

    Flags missing ``account_code``, duplicate ``account_code``, duplicate
    ``id`` and ``parent_account_id`` values that do not resolve.  Errors are
    reported in a stable order (by kind, then by value).
    """
    errors: list[str] = []

    for account in accounts:
        if not account.account_code or not account.account_code.strip():
            errors.append(f"Account {account.id} is missing account_code")

    code_counts = Counter(a.account_code for a in accounts if a.account_code)
    for code in sorted(c for c, n in code_counts.items() if n > 1):
        errors.append(f"Duplicate account_code: {code}")

    id_counts = Counter(a.id for a in accounts)
    for account_id in sorted(i for i, n in id_counts.items() if n > 1):
        errors.append(f"Duplicate id: {account_id}")

    ids = set(id_counts)
    for account in sorted(accounts, key=_code_key):
        parent_id = account.parent_account_id
        if parent_id and parent_id not in ids:
            errors.append(
                f"Account {account.account_code or account.id} has unresolved "
                f"parent_account_id: {parent_id}"
            )

    return CoAValidationResult(ok=not errors, errors=tuple(errors))


def parent_account_codes(accounts: Sequence[Account]) -> frozenset[str]:
    """Codes of accounts that at least one other account names as parent."""
    referenced = {a.parent_account_id for a in accounts if a.parent_account_id}
    return frozenset(
        a.account_code for a in accounts if a.id in referenced and a.account_code
    )


def is_parent_account(accounts: Sequence[Account], account_code: str) -> bool:
    return account_code in parent_account_codes(accounts)


def accounts_by_code(accounts: Sequence[Account]) -> dict[str, Account]:
    return {a.account_code: a for a in accounts if a.account_code}
