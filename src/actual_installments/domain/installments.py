import re
from dataclasses import dataclass
from decimal import Decimal

from actual_installments.domain.dates import add_months, format_date
from actual_installments.models import Transaction

INSTALLMENT_MARKER = re.compile(r"\(([0-9]{2})/([0-9]{2})\)")

DEFAULT_INSTALLMENT_LABEL = "installments of"

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class InstallmentInfo:
    parcel_index: int
    parcel_total: int
    matched_text: str

    @property
    def is_valid(self) -> bool:
        return 1 <= self.parcel_index <= self.parcel_total

    @property
    def is_final(self) -> bool:
        return self.parcel_index == self.parcel_total

    @property
    def remaining(self) -> int:
        """Installments left in the series, this one included."""
        return self.parcel_total - self.parcel_index + 1


def parse_installment(notes: str | None) -> InstallmentInfo | None:
    if not notes:
        return None
    match = INSTALLMENT_MARKER.search(notes)
    if not match:
        return None
    return InstallmentInfo(
        parcel_index=int(match.group(1), 10),
        parcel_total=int(match.group(2), 10),
        matched_text=match.group(0),
    )


def format_amount(amount: int) -> str:
    return str((Decimal(abs(amount)) / 100).quantize(_CENTS))


def installment_span(
    transaction_date: str,
    installment: InstallmentInfo,
    recompute_dates: bool = True,
) -> tuple[str, str]:
    """First and last month of the series as ``YYYY-MM``."""
    if not recompute_dates:
        month = format_date(transaction_date, "month")
        return month, month
    begin = add_months(transaction_date, 1 - installment.parcel_index)
    # end = begin + (total - 1); names built with date + (1 - index + total) will not dedup
    end = add_months(begin, installment.parcel_total - 1)
    return format_date(begin, "month"), format_date(end, "month")


def compose_schedule_name(
    transaction: Transaction,
    installment: InstallmentInfo,
    recompute_dates: bool = True,
    *,
    label: str = DEFAULT_INSTALLMENT_LABEL,
    currency_symbol: str = "",
) -> str:
    """Build the name every installment of one series shares.

    ``"Laptop (01/03)"`` paid on 2024-01-15 for -120000 becomes
    ``"Laptop: 3 installments of 1200.00 (2024-01:2024-03)"``.
    """
    if transaction.date is None:
        raise ValueError(f"Transaction {transaction.id} has no date")
    description = (transaction.notes or "").replace(installment.matched_text, "", 1).strip()
    begin, end = installment_span(transaction.date, installment, recompute_dates)
    amount = format_amount(transaction.amount)
    return (
        f"{description}: {installment.parcel_total} {label} "
        f"{currency_symbol}{amount} ({begin}:{end})"
    )
