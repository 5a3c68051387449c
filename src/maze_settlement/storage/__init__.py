from .archive_store import (
    ArchiveStore,
    LocalArchiveStore,
    SupabaseArchiveStore,
    create_archive_store,
)
from .settlement_checks import (
    MonthlySettlementChecks,
    SettlementCheck,
    company_completion_rates,
    completion_rate,
    stale_checks,
)

__all__ = [
    "ArchiveStore",
    "LocalArchiveStore",
    "SupabaseArchiveStore",
    "create_archive_store",
    "MonthlySettlementChecks",
    "SettlementCheck",
    "company_completion_rates",
    "completion_rate",
    "stale_checks",
]
