"""Upload orchestration over the kernel services."""

from consultflow_ingestion.services.upload_service import (
    TrialBalanceSaveResult,
    UploadService,
)

__all__ = ["TrialBalanceSaveResult", "UploadService"]
