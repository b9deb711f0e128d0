"""
CoAService -- per-company chart of accounts.

Responsibility:
    Lists and wholesale-replaces a company's chart of accounts.  A chart is
    validated before it is written; an invalid chart is never persisted.

Invariants enforced:
    - No duplicate ``account_code`` or ``id`` within a company.
    - Every ``parent_account_id`` resolves within the company.
    - Every account belongs to the company it is saved under.

Failure modes:
    - CoAValidationError listing every problem found.
"""

from __future__ import annotations

from typing import Sequence

from consultflow_kernel.domain.chart_of_accounts import (
    CoANode,
    CoAValidationResult,
    build_coa_tree,
    parent_account_codes,
    validate_coa,
)
from consultflow_kernel.domain.dtos import Account
from consultflow_kernel.exceptions import CoAValidationError
from consultflow_kernel.logging_config import get_logger
from consultflow_kernel.services.base import BaseService

logger = get_logger("services.coa")


class CoAService(BaseService[Account]):
    def list_coa(self, company_id: str) -> list[Account]:
        return sorted(self.store.load(company_id), key=lambda a: a.account_code)

    def upsert_coa(self, company_id: str, accounts: Sequence[Account]) -> list[Account]:
        """
        Replace the company's chart with ``accounts``.

        Raises:
            CoAValidationError: If the chart fails validation.
        """
        result = validate_coa(accounts)
        errors = list(result.errors)
        for account in accounts:
            if account.company_id != company_id:
                errors.append(
                    f"Account {account.account_code} belongs to {account.company_id}, "
                    f"not {company_id}"
                )
        if errors:
            logger.warning(
                "coa_rejected",
                extra={"company_id": company_id, "errors": errors},
            )
            raise CoAValidationError(company_id, errors)

        self.store.save(company_id, list(accounts))
        logger.info(
            "coa_replaced",
            extra={"company_id": company_id, "account_count": len(accounts)},
        )
        return self.list_coa(company_id)

    def validate_coa(self, accounts: Sequence[Account]) -> CoAValidationResult:
        return validate_coa(accounts)

    def build_coa_tree(self, accounts: Sequence[Account]) -> tuple[CoANode, ...]:
        return build_coa_tree(accounts)

    def parent_codes(self, company_id: str) -> frozenset[str]:
        return parent_account_codes(self.store.load(company_id))
