from unittest.mock import AsyncMock

import pytest

from actual_installments.domain.conditions import ValidationFailure
from actual_installments.domain.dates import add_months, format_date
from actual_installments.domain.installments import parse_installment
from actual_installments.models import (
    AccountCondition,
    AmountCondition,
    DateCondition,
    PayeeCondition,
    RecurrenceSpec,
    ScheduleDraft,
    Transaction,
)
from actual_installments.services.schedules import DEFAULT_AMOUNT, ScheduleBuilder, ScheduleMatcher

LAPTOP_NAME = "Laptop: 3 installments of 1200.00 (2024-01:2024-03)"


def _builder() -> ScheduleBuilder:
    return ScheduleBuilder(today_fn=lambda: "2024-06-01")


def _tx(**overrides) -> Transaction:
    data = {
        "id": "tx-1",
        "date": "2024-01-15",
        "amount": -120000,
        "payee": "payee-1",
        "account": "acct-1",
        "notes": "Laptop (01/03)",
    }
    data.update(overrides)
    return Transaction(**data)


def _store(existing: list[dict] | None = None) -> AsyncMock:
    store = AsyncMock()
    store.run_query.return_value = {"data": existing or []}
    store.create_schedule.return_value = "sched-new"
    return store


def test_build_draft():
    tx = _tx()
    draft = _builder().build(tx, parse_installment(tx.notes))

    assert draft.name == LAPTOP_NAME
    assert draft.posts_transaction is False
    assert draft.completed is False
    assert draft.payee == "payee-1"
    assert draft.account == "acct-1"
    assert draft.amount == -120000
    assert draft.amount_op == "is"
    assert draft.conditions == [DateCondition(op="isapprox", field="date", value="2024-01-15")]

    recurrence = draft.date
    assert recurrence.start == "2024-01-15"
    assert recurrence.frequency == "monthly"
    assert recurrence.interval == 1
    assert recurrence.skip_weekend is False
    assert recurrence.weekend_solve_mode == "after"
    assert recurrence.end_mode == "after_n_occurrences"
    assert recurrence.end_occurrences == 3
    assert recurrence.end_date == "2024-06-01"
    assert recurrence.occurrences == ["2024-01-15", "2024-02-15", "2024-03-15"]


@pytest.mark.parametrize("index,total", [(1, 1), (1, 12), (5, 12), (12, 12), (30, 99)])
def test_occurrence_count_and_stepping(index, total):
    tx = _tx(date="2024-01-31", notes=f"Item ({index:02d}/{total:02d})")
    draft = _builder().build(tx, parse_installment(tx.notes))

    occurrences = draft.date.occurrences
    assert len(occurrences) == total - index + 1
    assert occurrences[0] == "2024-01-31"
    for k, value in enumerate(occurrences):
        assert value == format_date(add_months("2024-01-31", k), "day")


def test_final_installment_draft_is_completed():
    tx = _tx(notes="Laptop (03/03)", date="2024-03-15")
    draft = _builder().build(tx, parse_installment(tx.notes))
    assert draft.completed is True
    assert draft.date.occurrences == ["2024-03-15"]


def test_missing_payee_becomes_empty_string():
    tx = _tx(payee=None)
    draft = _builder().build(tx, parse_installment(tx.notes))
    assert draft.payee == ""


def test_build_conditions_merges_draft_fields():
    tx = _tx()
    builder = _builder()
    draft = builder.build(tx, parse_installment(tx.notes))
    conditions = builder.build_conditions(draft)

    assert conditions[0] == PayeeCondition(op="is", field="payee", value="payee-1")
    assert conditions[1] == AccountCondition(op="is", field="account", value="acct-1")
    assert conditions[2].op == "isapprox"
    assert isinstance(conditions[2].value, RecurrenceSpec)
    assert conditions[2].value.occurrences == draft.date.occurrences
    assert conditions[3] == AmountCondition(op="is", field="amount", value=-120000)


def test_zero_amount_uses_sentinel_and_isapprox():
    tx = _tx(amount=0)
    builder = _builder()
    draft = builder.build(tx, parse_installment(tx.notes))
    conditions = builder.build_conditions(draft)
    assert conditions[-1] == AmountCondition(op="isapprox", field="amount", value=DEFAULT_AMOUNT)


def test_build_conditions_reports_validation_failure():
    builder = _builder()
    draft = ScheduleDraft(name="x", date=RecurrenceSpec(start="2024-01-01"), amount=-1)
    fields = builder.fields_for(draft).model_copy(update={"date": None})
    builder.fields_for = lambda _draft: fields
    assert builder.build_conditions(draft) == ValidationFailure("date is required")


@pytest.mark.anyio
async def test_matcher_creates_when_no_match():
    store = _store()
    matcher = ScheduleMatcher(store, _builder())
    tx = _tx()

    resolution = await matcher.resolve(tx, parse_installment(tx.notes))

    assert resolution.schedule_id == "sched-new"
    assert resolution.created is True
    assert resolution.marked_completed is False

    query = store.run_query.await_args.args[0]
    assert query.table == "schedules"
    assert query.merged_filter() == {"name": LAPTOP_NAME}

    fields, conditions = store.create_schedule.await_args.args
    assert fields == {
        "id": None,
        "posts_transaction": False,
        "name": LAPTOP_NAME,
        "completed": False,
    }
    assert [cond["field"] for cond in conditions] == ["payee", "account", "date", "amount"]
    assert conditions[2]["value"]["occurrences"] == ["2024-01-15", "2024-02-15", "2024-03-15"]
    store.update_schedule.assert_not_awaited()


@pytest.mark.anyio
async def test_matcher_creates_completed_for_final_installment():
    store = _store()
    tx = _tx(notes="Laptop (03/03)", date="2024-03-15")
    resolution = await ScheduleMatcher(store, _builder()).resolve(tx, parse_installment(tx.notes))

    fields, _ = store.create_schedule.await_args.args
    assert fields["completed"] is True
    assert resolution.marked_completed is True


@pytest.mark.anyio
async def test_matcher_reuses_existing_schedule():
    store = _store([{"id": "sched-1", "name": LAPTOP_NAME, "completed": False}])
    tx = _tx(id="tx-2", date="2024-02-15", notes="Laptop (02/03)")

    resolution = await ScheduleMatcher(store, _builder()).resolve(tx, parse_installment(tx.notes))

    assert resolution.schedule_id == "sched-1"
    assert resolution.created is False
    assert resolution.marked_completed is False
    store.create_schedule.assert_not_awaited()
    store.update_schedule.assert_not_awaited()


@pytest.mark.anyio
async def test_matcher_marks_reused_schedule_completed_on_final_installment():
    store = _store([{"id": "sched-1", "name": LAPTOP_NAME, "completed": False}])
    tx = _tx(id="tx-3", date="2024-03-15", notes="Laptop (03/03)")

    resolution = await ScheduleMatcher(store, _builder()).resolve(tx, parse_installment(tx.notes))

    assert resolution.marked_completed is True
    store.update_schedule.assert_awaited_once_with({"id": "sched-1", "completed": True}, None, False)


@pytest.mark.anyio
async def test_matcher_uses_first_of_duplicate_names():
    store = _store([
        {"id": "sched-a", "name": LAPTOP_NAME},
        {"id": "sched-b", "name": LAPTOP_NAME},
    ])
    tx = _tx(id="tx-2", date="2024-02-15", notes="Laptop (02/03)")

    resolution = await ScheduleMatcher(store, _builder()).resolve(tx, parse_installment(tx.notes))
    assert resolution.schedule_id == "sched-a"


@pytest.mark.anyio
async def test_matcher_ignore_existing_always_creates():
    store = _store([{"id": "sched-1", "name": LAPTOP_NAME}])
    tx = _tx()

    matcher = ScheduleMatcher(store, _builder(), ignore_existing=True)
    resolution = await matcher.resolve(tx, parse_installment(tx.notes))

    assert resolution.schedule_id == "sched-new"
    assert resolution.created is True
    store.create_schedule.assert_awaited_once()


@pytest.mark.anyio
async def test_matcher_returns_validation_failure_without_creating():
    store = _store()
    builder = _builder()
    builder.build_conditions = lambda draft: ValidationFailure("a valid amount is required")
    tx = _tx()

    result = await ScheduleMatcher(store, builder).resolve(tx, parse_installment(tx.notes))

    assert result == ValidationFailure("a valid amount is required")
    store.create_schedule.assert_not_awaited()


@pytest.mark.anyio
async def test_find_by_name_parses_conditions():
    store = _store([{
        "id": "sched-1",
        "name": LAPTOP_NAME,
        "_conditions": [
            {"op": "is", "field": "payee", "value": "p"},
            {"op": "is", "field": "notes", "value": "ignored"},
        ],
    }])
    schedules = await ScheduleMatcher(store, _builder()).find_by_name(LAPTOP_NAME)
    assert schedules[0].conditions == [PayeeCondition(op="is", field="payee", value="p")]
