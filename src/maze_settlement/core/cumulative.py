"""
누적 정산
=========
여러 달의 월 정산을 연간 / 전체 누적으로 합산합니다.

월마다 수수료율이 다를 수 있으므로 인원을 먼저 합치지 않고,
월별로 정산을 각각 계산한 뒤 금액을 더합니다. 이익률은 합산된 매출/이익으로 한 번만 다시 계산합니다.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..exceptions import InvalidInputError
from ..models.company import COMPANY_CODES, DEFAULT_COMPANIES, Company
from ..models.record import MonthlyRecord
from ..models.settlement import CumulativeSettlement, MonthlyLine
from .config import DEFAULT_CONFIG, SettlementConfig
from .ledger import build_company_settlement, compute_monthly_settlement

logger = logging.getLogger(__name__)

MODE_YEARLY = "yearly"
MODE_ALL = "all"


def available_years(months: Iterable[Tuple[int, int]]) -> List[int]:
    """데이터가 있는 연도 (최신순)"""
    return sorted({year for year, _ in months}, reverse=True)


def select_months(
    months: Iterable[Tuple[int, int]], mode: str = MODE_YEARLY, year: Optional[int] = None
) -> List[Tuple[int, int]]:
    """
    집계 대상 (년, 월) 선택 (과거 → 최신)

    - yearly: 해당 연도에 데이터가 있는 모든 달
    - all: 데이터가 있는 모든 달
    """
    ordered = sorted(set(months))
    if mode == MODE_ALL:
        return ordered
    if mode == MODE_YEARLY:
        if year is None:
            raise InvalidInputError("연간 누적에는 연도가 필요합니다")
        return [(y, m) for y, m in ordered if y == year]
    raise InvalidInputError(f"알 수 없는 누적 방식: {mode} (yearly / all)")


def rollup(
    records: Sequence[MonthlyRecord],
    config: SettlementConfig = DEFAULT_CONFIG,
    companies: Optional[Mapping[str, Company]] = None,
    mode: str = MODE_ALL,
    year: Optional[int] = None,
    years: Optional[List[int]] = None,
) -> CumulativeSettlement:
    """
    월 기록 여러 개를 누적 정산으로 합산

    Args:
        records: 대상 월 기록 (순서 무관, 과거 → 최신으로 정렬해 처리)
        mode / year: 결과에 표시할 선택 정보
        years: 선택 UI용 전체 연도 목록 (없으면 records에서 계산)
    """
    companies = companies or DEFAULT_COMPANIES
    ordered = sorted(records, key=lambda r: (r.year, r.month))
    if len({(r.year, r.month) for r in ordered}) != len(ordered):
        raise InvalidInputError("같은 달의 기록이 중복되었습니다")

    amounts: Dict[str, int] = {rel_id: 0 for rel_id in config.relationship_ids}
    totals = {code: {"revenue": 0, "income": 0, "expense": 0} for code in COMPANY_CODES}
    monthly: List[MonthlyLine] = []
    total_online = total_offline = 0

    for record in ordered:
        settlement = compute_monthly_settlement(record, config, companies)
        for flow in settlement.flows:
            amounts[flow.id] = amounts.get(flow.id, 0) + flow.amount
        for company in settlement.companies:
            bucket = totals.setdefault(company.code, {"revenue": 0, "income": 0, "expense": 0})
            bucket["revenue"] += company.revenue
            bucket["income"] += company.income
            bucket["expense"] += company.expense

        total_online += record.summary.online_count
        total_offline += record.summary.offline_count
        monthly.append(MonthlyLine(
            year=record.year,
            month=record.month,
            amounts=settlement.amounts,
            online_count=record.summary.online_count,
            offline_count=record.summary.offline_count,
        ))

    company_rows = [
        build_company_settlement(
            code,
            companies[code].name if code in companies else code,
            t["revenue"],
            t["income"],
            t["expense"],
        )
        for code, t in totals.items()
    ]

    logger.info("누적 정산 (%s): %d개월, 방문객 %d명", mode, len(ordered), total_online + total_offline)
    return CumulativeSettlement(
        mode=mode,
        year=year if mode == MODE_YEARLY else None,
        month_count=len(ordered),
        total_online=total_online,
        total_offline=total_offline,
        amounts=amounts,
        companies=company_rows,
        monthly=monthly,
        available_years=years if years is not None else available_years(
            (r.year, r.month) for r in ordered
        ),
    )
