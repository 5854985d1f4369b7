from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from time import perf_counter
from typing import Any

from actual_installments.domain.conditions import ValidationFailure
from actual_installments.domain.installments import parse_installment
from actual_installments.domain.timefmt import format_duration
from actual_installments.integration.base import LedgerStore
from actual_installments.integration.query import q
from actual_installments.logger import get_logger
from actual_installments.models import Transaction
from actual_installments.services.linking import TransactionLinker
from actual_installments.services.schedules import ScheduleMatcher

logger = get_logger(__name__)


@dataclass
class BatchReport:
    created: int = 0
    reused: int = 0
    completed: int = 0
    linked: int = 0
    skipped: list[tuple[str, str]] = field(default_factory=list)
    schedule_ids: dict[str, str] = field(default_factory=dict)
    elapsed: float = 0.0

    def skip(self, transaction_id: str, reason: str) -> None:
        self.skipped.append((transaction_id, reason))

    def summary(self) -> str:
        return (
            f"created {self.created}, reused {self.reused}, completed {self.completed}, "
            f"linked {self.linked}, skipped {len(self.skipped)} "
            f"in {format_duration(self.elapsed)}"
        )


async def fetch_candidates(store: LedgerStore) -> list[Transaction]:
    """Unscheduled transactions whose notes carry an installment marker."""
    query = q("transactions").filter({"schedule": None}).select("*")
    result = await store.run_query(query)
    rows: list[dict[str, Any]] = result.get("data", [])

    candidates = [
        Transaction.model_validate(row)
        for row in rows
        if parse_installment(row.get("notes")) is not None
    ]
    logger.info(
        "[BATCH] %d of %d unscheduled transactions carry an installment marker.",
        len(candidates),
        len(rows),
    )
    return candidates


class BatchResolver:
    """Runs each transaction through match, create and link, strictly one at a time.

    Checking for a schedule and creating it are separate remote calls, so two
    installments of one series in flight together could both create it.
    """

    def __init__(
        self,
        matcher: ScheduleMatcher,
        linker: TransactionLinker,
        *,
        detect_installments: bool = True,
    ) -> None:
        self.matcher = matcher
        self.linker = linker
        self.detect_installments = detect_installments

    async def resolve_one(self, transaction: Transaction, report: BatchReport) -> None:
        if not self.detect_installments:
            report.skip(transaction.id, "installment detection disabled")
            return
        if transaction.date is None:
            report.skip(transaction.id, "no date")
            return

        installment = parse_installment(transaction.notes)
        if installment is None:
            report.skip(transaction.id, "no installment marker")
            return
        if not installment.is_valid:
            logger.warning(
                "[BATCH] Transaction %s has invalid marker %s; skipping.",
                transaction.id,
                installment.matched_text,
            )
            report.skip(transaction.id, "invalid installment marker")
            return

        resolution = await self.matcher.resolve(transaction, installment)
        if isinstance(resolution, ValidationFailure):
            logger.warning(
                "[BATCH] Skipping transaction %s: %s",
                transaction.id,
                resolution.error,
            )
            report.skip(transaction.id, resolution.error)
            return

        if resolution.created:
            report.created += 1
        else:
            report.reused += 1
        if resolution.marked_completed:
            report.completed += 1

        await self.linker.link(transaction.id, resolution.schedule_id)
        report.linked += 1
        report.schedule_ids[transaction.id] = resolution.schedule_id

    async def resolve_all(self, transactions: Iterable[Transaction]) -> BatchReport:
        report = BatchReport()
        queue = deque(transactions)
        logger.info("[BATCH] Resolving %d transactions.", len(queue))
        start = perf_counter()

        while queue:
            transaction = queue.popleft()
            await self.resolve_one(transaction, report)

        report.elapsed = perf_counter() - start
        logger.info("[BATCH] Done: %s", report.summary())
        return report
