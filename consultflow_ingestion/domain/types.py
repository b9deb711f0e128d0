"""
consultflow_ingestion.domain.types -- validated DTOs for parsed upload rows.

Upload layers hand over loosely keyed dicts (spreadsheet headers vary in
case and naming).  ``RawAccountRow`` and ``RawTransactionRow`` check those
dicts at the boundary so only typed, Decimal-valued rows enter the core.
ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Mapping

from consultflow_kernel.domain.currency import CurrencyRegistry
from consultflow_kernel.domain.values import to_decimal
from consultflow_kernel.exceptions import InvalidCurrencyError, RowValidationError

# Accepted header spellings, first match wins
CODE_KEYS = ("accountCode", "account_code", "code", "Code", "Account Code")
NAME_KEYS = ("name", "accountName", "account_name", "Name", "Account Name")
DEBIT_KEYS = ("debit", "Debit")
CREDIT_KEYS = ("credit", "Credit")
CURRENCY_KEYS = ("currency", "Currency")
DATE_KEYS = ("date", "Date")
DESCRIPTION_KEYS = ("description", "Description", "memo", "Memo")
REFERENCE_KEYS = ("reference", "Reference", "ref", "Ref")

DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%d/%m/%Y", "%d-%m-%Y")


def _first(row: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        if key in row and row[key] is not None and row[key] != "":
            return row[key]
    return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _amount(value: Any, label: str, issues: list[str]) -> Decimal:
    try:
        return to_decimal(value)
    except ValueError:
        issues.append(f"{label} is not a number: {value!r}")
        return Decimal("0")


def _currency(value: Any, issues: list[str]) -> str | None:
    text = _text(value)
    if text is None:
        return None
    try:
        return CurrencyRegistry.normalize(text)
    except InvalidCurrencyError:
        issues.append(f"unknown currency: {text}")
        return None


def parse_date(value: Any) -> date | None:
    """Parse a date cell; returns None when no known format matches."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = _text(value)
    if text is None:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


class ResolutionMethod(str, Enum):
    """How a source code was mapped onto the chart of accounts."""

    EXACT = "exact"
    LEARNED = "learned"
    FUZZY = "fuzzy"
    MANUAL = "manual"
    UNRESOLVED = "unresolved"


@dataclass(frozen=True)
class RawAccountRow:
    """One trial balance line as uploaded, before mapping."""

    account_code: str
    debit: Decimal
    credit: Decimal
    name: str | None = None
    currency: str | None = None
    row_number: int = 0

    @property
    def is_zero(self) -> bool:
        return self.debit == 0 and self.credit == 0

    @classmethod
    def from_dict(cls, row: Mapping[str, Any], row_number: int = 0) -> RawAccountRow:
        """
        Validate one parsed row.

        Raises:
            RowValidationError: Listing every problem found in the row.
        """
        issues: list[str] = []
        code = _text(_first(row, CODE_KEYS))
        if code is None:
            issues.append("missing account code")
        debit = _amount(_first(row, DEBIT_KEYS), "debit", issues)
        credit = _amount(_first(row, CREDIT_KEYS), "credit", issues)
        currency = _currency(_first(row, CURRENCY_KEYS), issues)
        if issues:
            raise RowValidationError(row_number, issues)
        return cls(
            account_code=code,
            debit=debit,
            credit=credit,
            name=_text(_first(row, NAME_KEYS)),
            currency=currency,
            row_number=row_number,
        )


@dataclass(frozen=True)
class RawTransactionRow:
    """One transaction line as uploaded."""

    date: date
    account_code: str
    debit: Decimal
    credit: Decimal
    currency: str | None = None
    description: str | None = None
    reference: str | None = None
    row_number: int = 0

    @classmethod
    def from_dict(cls, row: Mapping[str, Any], row_number: int = 0) -> RawTransactionRow:
        """
        Validate one parsed transaction row.

        Raises:
            RowValidationError: Listing every problem found in the row.
        """
        issues: list[str] = []
        raw_date = _first(row, DATE_KEYS)
        on = parse_date(raw_date)
        if on is None:
            issues.append(f"missing or unreadable date: {raw_date!r}")
        code = _text(_first(row, CODE_KEYS))
        if code is None:
            issues.append("missing account code")
        debit = _amount(_first(row, DEBIT_KEYS), "debit", issues)
        credit = _amount(_first(row, CREDIT_KEYS), "credit", issues)
        currency = _currency(_first(row, CURRENCY_KEYS), issues)
        if issues:
            raise RowValidationError(row_number, issues)
        return cls(
            date=on,
            account_code=code,
            debit=debit,
            credit=credit,
            currency=currency,
            description=_text(_first(row, DESCRIPTION_KEYS)),
            reference=_text(_first(row, REFERENCE_KEYS)),
            row_number=row_number,
        )


@dataclass(frozen=True)
class RowParseResult:
    """Rows that validated and the errors of those that did not."""

    rows: tuple = ()
    errors: tuple[RowValidationError, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors


def parse_account_rows(rows: Iterable[Mapping[str, Any]]) -> RowParseResult:
    """Validate every row, collecting errors instead of stopping at the first."""
    parsed: list[RawAccountRow] = []
    errors: list[RowValidationError] = []
    for number, row in enumerate(rows, start=1):
        try:
            parsed.append(RawAccountRow.from_dict(row, number))
        except RowValidationError as exc:
            errors.append(exc)
    return RowParseResult(rows=tuple(parsed), errors=tuple(errors))


def parse_transaction_rows(rows: Iterable[Mapping[str, Any]]) -> RowParseResult:
    parsed: list[RawTransactionRow] = []
    errors: list[RowValidationError] = []
    for number, row in enumerate(rows, start=1):
        try:
            parsed.append(RawTransactionRow.from_dict(row, number))
        except RowValidationError as exc:
            errors.append(exc)
    return RowParseResult(rows=tuple(parsed), errors=tuple(errors))


@dataclass(frozen=True)
class RowResolution:
    """Mapping outcome for one source code."""

    source_code: str
    target_code: str | None
    method: ResolutionMethod
    score: int = 0
    name: str | None = None

    @property
    def resolved(self) -> bool:
        return self.target_code is not None


@dataclass(frozen=True)
class MappingProposal:
    """Per-source-code resolutions for an upload, in first-seen order."""

    resolutions: tuple[RowResolution, ...] = ()
    unresolved: tuple[str, ...] = field(default=())

    @property
    def mapping(self) -> dict[str, str]:
        return {r.source_code: r.target_code for r in self.resolutions if r.target_code}

    @property
    def is_complete(self) -> bool:
        return not self.unresolved
