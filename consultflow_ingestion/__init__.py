"""
ConsultFlow ingestion: parsed upload rows to typed trial balances.

Rows arrive already parsed (file reading happens upstream).  This package
validates them into typed DTOs, maps their account codes onto the company
chart of accounts, converts foreign amounts, and hands the result to the
kernel's trial balance and transaction services.
"""
