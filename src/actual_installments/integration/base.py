from abc import ABC, abstractmethod
from typing import Any

from actual_installments.integration.query import Query


class RemoteCallError(RuntimeError):
    """A call to the ledger failed; the batch cannot continue."""


class LedgerStore(ABC):
    @abstractmethod
    async def init(self, data_dir: str, server_url: str | None, password: str | None) -> None:
        """Open a session against the ledger server."""
        pass

    @abstractmethod
    async def download_budget(self, budget_id: str, password: str | None = None) -> None:
        pass

    @abstractmethod
    async def run_query(self, query: Query) -> dict[str, Any]:
        """Run a query; the result carries the records under ``data``."""
        pass

    @abstractmethod
    async def create_schedule(
        self,
        fields: dict[str, Any],
        conditions: list[dict[str, Any]],
    ) -> str:
        """Create a schedule and return the identifier assigned to it."""
        pass

    @abstractmethod
    async def update_schedule(
        self,
        fields: dict[str, Any],
        conditions: list[dict[str, Any]] | None,
        reset_next_date: bool = False,
    ) -> None:
        """Partial update by ``fields["id"]``; ``None`` conditions are left untouched."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction_id: str, fields: dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def sync(self) -> None:
        pass

    @abstractmethod
    async def shutdown(self) -> None:
        pass
