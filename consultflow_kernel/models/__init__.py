"""ORM models backing the SQL record store."""

from consultflow_kernel.models.company_record import CompanyRecord

__all__ = ["CompanyRecord"]
