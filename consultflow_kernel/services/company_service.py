"""
CompanyService -- registry of reporting entities.

Companies live in one collection under ``GLOBAL_SCOPE``.  The registry
supplies each company's base currency to the upload pipeline and the
default selection (all active companies) to the consolidation engine.
"""

from __future__ import annotations

from dataclasses import replace

from consultflow_kernel.domain.currency import CurrencyRegistry
from consultflow_kernel.domain.dtos import Company
from consultflow_kernel.exceptions import CompanyNotFoundError
from consultflow_kernel.logging_config import get_logger
from consultflow_kernel.services.base import BaseService
from consultflow_kernel.storage.base import GLOBAL_SCOPE

logger = get_logger("services.company")


class CompanyService(BaseService[Company]):
    def upsert_company(self, company: Company) -> Company:
        """Insert or replace by id; the currency code is normalized."""
        company = replace(company, currency=CurrencyRegistry.normalize(company.currency))

        def _upsert(companies: list[Company]) -> list[Company]:
            others = [c for c in companies if c.id != company.id]
            return others + [company]

        self.store.update(GLOBAL_SCOPE, _upsert)
        logger.info(
            "company_upserted",
            extra={"company_id": company.id, "currency": company.currency},
        )
        return company

    def get_company(self, company_id: str) -> Company:
        for company in self.store.load(GLOBAL_SCOPE):
            if company.id == company_id:
                return company
        raise CompanyNotFoundError(company_id)

    def find_company(self, company_id: str) -> Company | None:
        try:
            return self.get_company(company_id)
        except CompanyNotFoundError:
            return None

    def list_companies(self, active_only: bool = True) -> list[Company]:
        companies = self.store.load(GLOBAL_SCOPE)
        if active_only:
            companies = [c for c in companies if c.is_active]
        return sorted(companies, key=lambda c: c.id)

    def deactivate_company(self, company_id: str) -> Company:
        company = self.get_company(company_id)
        return self.upsert_company(replace(company, is_active=False))
