from typing import Any

import pytest

from actual_installments.integration.base import LedgerStore, RemoteCallError
from actual_installments.integration.query import Query


class FakeLedgerStore(LedgerStore):
    """In-memory ledger that understands the equality filters used by the pipeline."""

    def __init__(self, transactions: list[dict[str, Any]] | None = None) -> None:
        self.transactions = {tx["id"]: dict(tx) for tx in transactions or []}
        self.schedules: dict[str, dict[str, Any]] = {}
        self.calls: list[str] = []
        self.fail_on: set[str] = set()
        self._next_id = 1

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RemoteCallError(f"{name} failed")

    async def init(self, data_dir: str, server_url: str | None, password: str | None) -> None:
        self._record("init")

    async def download_budget(self, budget_id: str, password: str | None = None) -> None:
        self._record("download_budget")

    async def run_query(self, query: Query) -> dict[str, Any]:
        self._record("run_query")
        table = self.transactions if query.table == "transactions" else self.schedules
        wanted = query.merged_filter()
        rows = [
            dict(row)
            for row in table.values()
            if all(row.get(key) == value for key, value in wanted.items())
        ]
        return {"data": rows}

    async def create_schedule(
        self,
        fields: dict[str, Any],
        conditions: list[dict[str, Any]],
    ) -> str:
        self._record("create_schedule")
        schedule_id = f"sched-{self._next_id}"
        self._next_id += 1
        self.schedules[schedule_id] = {**fields, "id": schedule_id, "_conditions": conditions}
        return schedule_id

    async def update_schedule(
        self,
        fields: dict[str, Any],
        conditions: list[dict[str, Any]] | None,
        reset_next_date: bool = False,
    ) -> None:
        self._record("update_schedule")
        schedule = self.schedules[fields["id"]]
        schedule.update(fields)
        if conditions is not None:
            schedule["_conditions"] = conditions

    async def update_transaction(self, transaction_id: str, fields: dict[str, Any]) -> None:
        self._record("update_transaction")
        self.transactions[transaction_id].update(fields)

    async def sync(self) -> None:
        self._record("sync")

    async def shutdown(self) -> None:
        self._record("shutdown")


@pytest.fixture
def fake_store() -> FakeLedgerStore:
    return FakeLedgerStore()


@pytest.fixture
def laptop_transaction() -> dict[str, Any]:
    return {
        "id": "tx-1",
        "date": "2024-01-15",
        "amount": -120000,
        "payee": "payee-1",
        "account": "acct-1",
        "notes": "Laptop (01/03)",
        "schedule": None,
    }
