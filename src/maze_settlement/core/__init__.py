"""
메이즈랜드 정산 - Core Package
==============================
핵심 계산 엔진
"""

from ..exceptions import InvalidInputError, InvalidRateError, NotFoundError, SettlementError
from .aggregator import (
    CorrectionResult,
    apply_daily_correction,
    build_monthly_record,
    check_consistency,
    ingest_daily_records,
    rebuild_from_days,
    with_settlement,
)
from .config import SettlementConfig, load_settlement_config
from .cumulative import rollup, select_months
from .flow_model import FlowContext, flow_amount_per_visitor
from .ledger import compute_monthly_settlement, compute_settlement
from .master_data import MasterData, load_master_data
from .visibility import filter_for_viewer, flows_for_company, viewable_company_codes

__all__ = [
    "SettlementError",
    "InvalidInputError",
    "InvalidRateError",
    "NotFoundError",
    "CorrectionResult",
    "apply_daily_correction",
    "build_monthly_record",
    "check_consistency",
    "ingest_daily_records",
    "rebuild_from_days",
    "with_settlement",
    "SettlementConfig",
    "load_settlement_config",
    "rollup",
    "select_months",
    "FlowContext",
    "flow_amount_per_visitor",
    "compute_monthly_settlement",
    "compute_settlement",
    "MasterData",
    "load_master_data",
    "filter_for_viewer",
    "flows_for_company",
    "viewable_company_codes",
]
