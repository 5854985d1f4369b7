from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from actual_installments.models import (
    AccountCondition,
    AmountCondition,
    DateCondition,
    PayeeCondition,
    ScheduleCondition,
    ScheduleFields,
)


@dataclass(frozen=True)
class ValidationFailure:
    error: str


@dataclass(frozen=True)
class ExtractedConditions:
    payee: PayeeCondition | None
    account: AccountCondition | None
    date: DateCondition | None


def _first(
    conditions: Sequence[ScheduleCondition],
    ops: tuple[str, ...],
    field: str,
) -> Any:
    for cond in conditions:
        if cond.op in ops and cond.field == field:
            return cond
    return None


def extract_schedule_conditions(conditions: Sequence[ScheduleCondition]) -> ExtractedConditions:
    return ExtractedConditions(
        payee=_first(conditions, ("is",), "payee") or _first(conditions, ("is",), "description"),
        account=_first(conditions, ("is",), "account") or _first(conditions, ("is",), "acct"),
        date=_first(conditions, ("is", "isapprox"), "date"),
    )


def update_schedule_conditions(
    conditions: Sequence[ScheduleCondition],
    fields: ScheduleFields,
) -> list[ScheduleCondition] | ValidationFailure:
    """Merge ``fields`` into ``conditions``.

    Existing payee, account and date conditions keep their op and field and only
    take the new value. Missing ones are created when a value is given. The
    amount condition is always rebuilt from ``fields``.
    """
    if fields.date is None:
        return ValidationFailure("date is required")
    if fields.amount is None:
        return ValidationFailure("a valid amount is required")

    extracted = extract_schedule_conditions(conditions)

    merged: list[ScheduleCondition | None] = [
        _update_payee(extracted.payee, fields.payee),
        _update_account(extracted.account, fields.account),
        _update_date(extracted.date, fields),
        AmountCondition(op=fields.amount_op, field="amount", value=fields.amount),
    ]
    return [cond for cond in merged if cond is not None]


def _update_payee(cond: PayeeCondition | None, value: str | None) -> PayeeCondition | None:
    if cond is not None:
        return cond.model_copy(update={"value": value})
    if value is not None:
        return PayeeCondition(op="is", field="payee", value=value)
    return None


def _update_account(cond: AccountCondition | None, value: str | None) -> AccountCondition | None:
    if cond is not None:
        return cond.model_copy(update={"value": value})
    if value is not None:
        return AccountCondition(op="is", field="account", value=value)
    return None


def _update_date(cond: DateCondition | None, fields: ScheduleFields) -> DateCondition | None:
    if cond is not None:
        return cond.model_copy(update={"value": fields.date})
    if fields.date is not None:
        return DateCondition(op="isapprox", field="date", value=fields.date)
    return None

