from actual_installments.integration.base import LedgerStore
from actual_installments.logger import get_logger

logger = get_logger(__name__)


class TransactionLinker:
    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    async def link(self, transaction_id: str, schedule_id: str) -> None:
        await self.store.update_transaction(transaction_id, {"schedule": schedule_id})
        logger.debug("[LINK] Transaction %s -> schedule %s", transaction_id, schedule_id)
