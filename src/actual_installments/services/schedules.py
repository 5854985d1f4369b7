from collections.abc import Callable
from dataclasses import dataclass

from actual_installments.domain.conditions import ValidationFailure, update_schedule_conditions
from actual_installments.domain.dates import add_months, format_date, today
from actual_installments.domain.installments import (
    DEFAULT_INSTALLMENT_LABEL,
    InstallmentInfo,
    compose_schedule_name,
)
from actual_installments.integration.base import LedgerStore
from actual_installments.integration.query import q
from actual_installments.logger import get_logger
from actual_installments.models import (
    DateCondition,
    RecurrenceSpec,
    Schedule,
    ScheduleCondition,
    ScheduleDraft,
    ScheduleFields,
    Transaction,
    dump_condition,
)

logger = get_logger(__name__)

# Non-zero so the sign of an empty amount can still be flipped later
DEFAULT_AMOUNT = -1000


@dataclass(frozen=True)
class ScheduleResolution:
    schedule_id: str
    name: str
    created: bool
    marked_completed: bool


class ScheduleBuilder:
    def __init__(
        self,
        *,
        recompute_dates: bool = True,
        label: str = DEFAULT_INSTALLMENT_LABEL,
        currency_symbol: str = "",
        today_fn: Callable[[], str] = today,
    ) -> None:
        self.recompute_dates = recompute_dates
        self.label = label
        self.currency_symbol = currency_symbol
        self.today_fn = today_fn

    def compose_name(self, transaction: Transaction, installment: InstallmentInfo) -> str:
        return compose_schedule_name(
            transaction,
            installment,
            self.recompute_dates,
            label=self.label,
            currency_symbol=self.currency_symbol,
        )

    def build_recurrence(self, start: str, installment: InstallmentInfo) -> RecurrenceSpec:
        count = installment.remaining
        return RecurrenceSpec(
            start=start,
            interval=1,
            frequency="monthly",
            patterns=[],
            skip_weekend=False,
            weekend_solve_mode="after",
            end_mode="after_n_occurrences",
            end_occurrences=count,
            end_date=self.today_fn(),
            occurrences=[format_date(add_months(start, k), "day") for k in range(count)],
        )

    def build(self, transaction: Transaction, installment: InstallmentInfo) -> ScheduleDraft:
        if transaction.date is None:
            raise ValueError(f"Transaction {transaction.id} has no date")
        return ScheduleDraft(
            name=self.compose_name(transaction, installment),
            posts_transaction=False,
            completed=installment.is_final,
            conditions=[DateCondition(op="isapprox", field="date", value=transaction.date)],
            date=self.build_recurrence(transaction.date, installment),
            payee=transaction.payee or "",
            account=transaction.account,
            amount=transaction.amount,
            amount_op="is",
        )

    def fields_for(self, draft: ScheduleDraft) -> ScheduleFields:
        if draft.amount:
            return ScheduleFields(
                payee=draft.payee,
                account=draft.account,
                date=draft.date,
                amount=draft.amount,
                amount_op=draft.amount_op,
            )
        return ScheduleFields(
            payee=draft.payee,
            account=draft.account,
            date=draft.date,
            amount=DEFAULT_AMOUNT,
            amount_op="isapprox",
        )

    def build_conditions(self, draft: ScheduleDraft) -> list[ScheduleCondition] | ValidationFailure:
        return update_schedule_conditions(draft.conditions, self.fields_for(draft))


class ScheduleMatcher:
    """Finds the schedule for an installment series by name, creating it when absent."""

    def __init__(
        self,
        store: LedgerStore,
        builder: ScheduleBuilder,
        *,
        ignore_existing: bool = False,
    ) -> None:
        self.store = store
        self.builder = builder
        self.ignore_existing = ignore_existing

    async def find_by_name(self, name: str) -> list[Schedule]:
        query = q("schedules").filter({"name": name}).select("*")
        result = await self.store.run_query(query)
        return [Schedule.model_validate(row) for row in result.get("data", [])]

    async def resolve(
        self,
        transaction: Transaction,
        installment: InstallmentInfo,
    ) -> ScheduleResolution | ValidationFailure:
        name = self.builder.compose_name(transaction, installment)
        existing = await self.find_by_name(name)

        if not existing or self.ignore_existing:
            return await self._create(transaction, installment)

        if len(existing) > 1:
            logger.warning(
                "[SCHEDULE] %d schedules share the name '%s'; using %s.",
                len(existing),
                name,
                existing[0].id,
            )
        schedule = existing[0]
        if schedule.id is None:
            raise ValueError(f"Schedule '{name}' was returned without an id")

        marked = False
        if installment.is_final:
            await self.store.update_schedule({"id": schedule.id, "completed": True}, None, False)
            marked = True
            logger.info("[SCHEDULE] Marked '%s' completed.", name)
        else:
            logger.debug("[SCHEDULE] Reusing '%s' (%s).", name, schedule.id)
        return ScheduleResolution(
            schedule_id=schedule.id,
            name=name,
            created=False,
            marked_completed=marked,
        )

    async def _create(
        self,
        transaction: Transaction,
        installment: InstallmentInfo,
    ) -> ScheduleResolution | ValidationFailure:
        draft = self.builder.build(transaction, installment)
        conditions = self.builder.build_conditions(draft)
        if isinstance(conditions, ValidationFailure):
            return conditions

        schedule_id = await self.store.create_schedule(
            {
                "id": None,
                "posts_transaction": draft.posts_transaction,
                "name": draft.name,
                "completed": draft.completed,
            },
            [dump_condition(cond) for cond in conditions],
        )
        logger.info(
            "[SCHEDULE] Created '%s' (%s) with %d occurrences.",
            draft.name,
            schedule_id,
            len(draft.date.occurrences),
        )
        return ScheduleResolution(
            schedule_id=schedule_id,
            name=draft.name,
            created=True,
            marked_completed=draft.completed,
        )
