"""
MappingService -- learned source-code to CoA-code mappings per company.

Mappings are learned only after a successful trial balance save and are
consulted before fuzzy matching on later uploads.
"""

from __future__ import annotations

from typing import Mapping

from consultflow_kernel.domain.dtos import LearnedMapping
from consultflow_kernel.logging_config import get_logger
from consultflow_kernel.services.base import BaseService

logger = get_logger("services.mapping")


class MappingService(BaseService[LearnedMapping]):
    def get_saved_mapping(self, company_id: str) -> dict[str, str]:
        return {m.source_code: m.account_code for m in self.store.load(company_id)}

    def save_mapping(self, company_id: str, mapping: Mapping[str, str]) -> dict[str, str]:
        """Merge ``mapping`` into the saved one; new values win."""

        def _merge(existing: list[LearnedMapping]) -> list[LearnedMapping]:
            merged = {m.source_code: m.account_code for m in existing}
            merged.update({str(k): str(v) for k, v in mapping.items()})
            return [LearnedMapping(s, t) for s, t in sorted(merged.items())]

        saved = self.store.update(company_id, _merge)
        logger.info(
            "mapping_saved",
            extra={"company_id": company_id, "learned": len(mapping), "total": len(saved)},
        )
        return {m.source_code: m.account_code for m in saved}
