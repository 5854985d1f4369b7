from actual_installments.core.settings import RunSettings
from actual_installments.integration.actual import ActualClient
from actual_installments.integration.base import LedgerStore
from actual_installments.logger import get_logger
from actual_installments.services.batch import BatchReport, BatchResolver, fetch_candidates
from actual_installments.services.linking import TransactionLinker
from actual_installments.services.schedules import ScheduleBuilder, ScheduleMatcher

logger = get_logger(__name__)


class ConfigurationError(ValueError):
    pass


def build_resolver(store: LedgerStore, run_settings: RunSettings) -> BatchResolver:
    builder = ScheduleBuilder(
        recompute_dates=run_settings.recompute_dates,
        label=run_settings.installment_label,
        currency_symbol=run_settings.currency_symbol,
    )
    matcher = ScheduleMatcher(store, builder, ignore_existing=run_settings.ignore_existing)
    return BatchResolver(
        matcher,
        TransactionLinker(store),
        detect_installments=run_settings.detect_installments,
    )


async def run_batch(run_settings: RunSettings, store: LedgerStore) -> BatchReport:
    """Open the budget, link every installment transaction, then sync and close."""
    if not run_settings.budget_id:
        raise ConfigurationError("ACTUAL_BUDGET_ID is not configured")

    try:
        await store.init(run_settings.data_dir, run_settings.server_url, run_settings.password)
        await store.download_budget(run_settings.budget_id, run_settings.budget_password)

        candidates = await fetch_candidates(store)
        report = await build_resolver(store, run_settings).resolve_all(candidates)

        await store.sync()
    except Exception:
        try:
            await store.shutdown()
        except Exception as shutdown_exc:
            logger.warning("[ACTUAL] Shutdown after failure also failed: %s", shutdown_exc)
        raise

    await store.shutdown()
    return report


async def run(run_settings: RunSettings) -> BatchReport:
    if not run_settings.bridge_url:
        raise ConfigurationError("ACTUAL_BRIDGE_URL is not configured")

    async with ActualClient(
        base_url=run_settings.bridge_url,
        api_key=run_settings.bridge_api_key,
        timeout=run_settings.request_timeout,
    ) as client:
        return await run_batch(run_settings, client)
