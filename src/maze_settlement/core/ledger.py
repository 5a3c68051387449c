"""
정산 원장
=========
채널별 인원 + 현장 인원 → 정산 항목(flow) 전체 → 기업별 매출/수익/비용/이익

계산 흐름:
    1단계  채널/현장별 고정 단가 항목 금액 × 인원을 Decimal 그대로 누적
    2단계  SKP 순이익(대행 수수료 기준)을 같은 방식으로 누적한 뒤 수수료율 적용
    보고   항목별 합계를 원 단위로 한 번만 반올림 (ROUND_HALF_UP)

기업별 집계:
    매출 = 발행처 & 매출 항목 합
    수익 = 매출 + 발행처 & 비매출 항목 합
    비용 = 수취처 항목 합
    이익 = 수익 - 비용
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..exceptions import InvalidInputError
from ..models.company import COMPANY_CODES, DEFAULT_COMPANIES, Company, CompanySettlement
from ..models.record import MonthlyRecord
from ..models.settlement import ChannelLine, NetTransfer, SettlementFlow, SettlementResult
from .config import DEFAULT_CONFIG, SettlementConfig
from .flow_model import (
    HUNDRED,
    FlowContext,
    agency_base_per_visitor,
    fee_multiplier,
    primary_amounts_per_visitor,
)
from .master_data import MasterData

logger = logging.getLogger(__name__)

OFFLINE_NAME = "현장 판매"


@dataclass
class ChannelInput:
    """원장 입력 1줄 (채널별 인원과 수수료율)"""
    code: str
    name: str
    count: int
    fee_rate: float


def round_won(value: Decimal) -> int:
    """원 단위 반올림 (0.5 올림)"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def profit_rate(profit: int, revenue: int) -> float:
    """이익률 = 이익 / 매출 × 100, 소수 첫째 자리 (매출 0이면 0)"""
    if not revenue:
        return 0.0
    rate = Decimal(profit) / Decimal(revenue) * HUNDRED
    return float(rate.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _check_count(label: str, count) -> int:
    if not isinstance(count, int) or isinstance(count, bool) or count < 0:
        raise InvalidInputError(f"{label} 인원이 올바르지 않습니다: {count!r}")
    return count


# ────────────────────────────────────────────
# 기업별 집계
# ────────────────────────────────────────────

def fold_companies(
    flows: Iterable[SettlementFlow],
    companies: Optional[Mapping[str, Company]] = None,
) -> List[CompanySettlement]:
    """정산 항목을 기업별 매출/수익/비용/이익으로 집계"""
    companies = companies or DEFAULT_COMPANIES
    totals = {code: {"revenue": 0, "non_revenue": 0, "expense": 0} for code in COMPANY_CODES}

    for flow in flows:
        for code in (flow.source, flow.destination):
            totals.setdefault(code, {"revenue": 0, "non_revenue": 0, "expense": 0})
        bucket = "revenue" if flow.is_revenue else "non_revenue"
        totals[flow.source][bucket] += flow.amount
        totals[flow.destination]["expense"] += flow.amount

    return [
        build_company_settlement(
            code,
            companies[code].name if code in companies else code,
            t["revenue"],
            t["revenue"] + t["non_revenue"],
            t["expense"],
        )
        for code, t in totals.items()
    ]


def build_company_settlement(
    code: str, name: str, revenue: int, income: int, expense: int
) -> CompanySettlement:
    profit = income - expense
    return CompanySettlement(
        code=code,
        name=name,
        revenue=revenue,
        income=income,
        expense=expense,
        profit=profit,
        profit_rate=profit_rate(profit, revenue),
    )


# ────────────────────────────────────────────
# 상계 입금액
# ────────────────────────────────────────────

def compute_net_transfers(
    flows: Sequence[SettlementFlow],
    companies: Optional[Mapping[str, Company]] = None,
    hub: str = "SKP",
) -> List[NetTransfer]:
    """
    기준 회사(SKP)와 상대 회사별 상계 입금액

    발행처가 금액을 받으므로, SKP가 받을 금액 - 상대가 받을 금액이 양수면
    상대 회사가 SKP에 입금합니다.
    """
    companies = companies or DEFAULT_COMPANIES
    counterparties = [code for code in COMPANY_CODES if code != hub]
    for flow in flows:
        for code in (flow.source, flow.destination):
            if code != hub and code not in counterparties:
                counterparties.append(code)

    transfers = []
    for other in counterparties:
        related = [f for f in flows if {f.source, f.destination} == {hub, other}]
        if not related:
            continue
        hub_receives = sum(f.amount for f in related if f.source == hub)
        other_receives = sum(f.amount for f in related if f.source == other)
        net = hub_receives - other_receives
        payer, payee = (other, hub) if net > 0 else (hub, other)
        amount = abs(net)
        payer_name = companies[payer].name if payer in companies else payer
        payee_name = companies[payee].name if payee in companies else payee
        transfers.append(NetTransfer(
            pair=f"{hub}_{other}",
            from_code=payer,
            to_code=payee,
            amount=amount,
            description=f"{payer_name}이(가) {payee_name}에 {amount:,}원 입금",
        ))
    return transfers


# ────────────────────────────────────────────
# 정산 계산
# ────────────────────────────────────────────

def _settle(
    lines: Sequence[ChannelInput],
    offline_count: int,
    config: SettlementConfig,
    companies: Optional[Mapping[str, Company]],
) -> SettlementResult:
    totals: Dict[str, Decimal] = {rel.id: Decimal(0) for rel in config.relationships}
    agency_base = Decimal(0)
    breakdown: List[ChannelLine] = []
    base_price = Decimal(config.base_price)

    contexts = [(FlowContext(line.code, line.fee_rate), line.name, line.count) for line in lines]
    if offline_count > 0:
        contexts.append((FlowContext.offline(), OFFLINE_NAME, offline_count))

    for context, name, count in contexts:
        if count <= 0:
            continue
        # 1단계: 고정 단가 항목
        primary = primary_amounts_per_visitor(context, config)
        for rel_id, amount in primary.items():
            totals[rel_id] += amount * count
        # 2단계 기준: SKP 순이익
        agency_base += agency_base_per_visitor(primary, config) * count

        gross = base_price * count
        net = gross * fee_multiplier(0 if context.is_offline else context.fee_rate)
        breakdown.append(ChannelLine(
            code=context.channel_code,
            name=name,
            count=count,
            fee_rate=0.0 if context.is_offline else float(context.fee_rate),
            gross=round_won(gross),
            fee=round_won(gross - net),
            net=round_won(net),
        ))

    flows = [
        SettlementFlow(
            id=rel.id,
            source=rel.source,
            destination=rel.destination,
            is_revenue=rel.is_revenue,
            amount=round_won(totals[rel.id]),
            description=rel.description,
        )
        for rel in config.relationships
    ]
    agency = config.agency_relationship
    flows.append(SettlementFlow(
        id=agency.id,
        source=agency.source,
        destination=agency.destination,
        is_revenue=agency.is_revenue,
        amount=round_won(agency_base * config.agency_fee_rate / HUNDRED),
        description=agency.description,
    ))

    online_count = sum(line.count for line in lines)
    return SettlementResult(
        online_count=online_count,
        offline_count=offline_count,
        flows=flows,
        companies=fold_companies(flows, companies),
        channel_breakdown=breakdown,
        net_transfers=compute_net_transfers(flows, companies, config.hub_company),
        agency_base=round_won(agency_base),
    )


def compute_settlement(
    counts: Mapping[str, int],
    offline_count: int,
    master: Optional[MasterData] = None,
    config: SettlementConfig = DEFAULT_CONFIG,
    companies: Optional[Mapping[str, Company]] = None,
) -> SettlementResult:
    """
    채널별 인원 + 현장 인원으로 정산 계산

    Args:
        counts: 채널코드 → 인원
        offline_count: 현장 판매 인원
        master: 채널 마스터 (수수료율/채널명 조회)

    Note:
        마스터에 없는 채널은 수수료 0%, 코드를 채널명으로 사용합니다.
        (과거 데이터에 폐지된 채널이 남아 있을 수 있음)

    Raises:
        InvalidInputError: 음수 인원
        InvalidRateError: 마스터 수수료율이 0~100 범위를 벗어남
    """
    _check_count("현장", offline_count)
    lines = []
    for code, count in counts.items():
        _check_count(f"채널 {code}", count)
        channel = master.get_channel(code) if master else None
        if channel is None:
            logger.warning("마스터에 없는 채널 '%s' → 수수료 0%%로 계산", code)
            lines.append(ChannelInput(code, code, count, 0.0))
        else:
            lines.append(ChannelInput(code, channel.name, count, channel.fee_rate))
    return _settle(lines, offline_count, config, companies)


def compute_monthly_settlement(
    record: MonthlyRecord,
    config: SettlementConfig = DEFAULT_CONFIG,
    companies: Optional[Mapping[str, Company]] = None,
) -> SettlementResult:
    """월 기록의 요약 + 채널 맵(수수료율 스냅샷)으로 정산 계산"""
    _check_count("현장", record.summary.offline_count)
    lines = []
    for code, sales in record.channels.items():
        _check_count(f"채널 {code}", sales.count)
        lines.append(ChannelInput(code, sales.name, sales.count, sales.fee_rate))
    result = _settle(lines, record.summary.offline_count, config, companies)
    if result.online_count != record.summary.online_count:
        logger.warning(
            "%s 채널 합계(%d)와 온라인 요약(%d)이 다릅니다",
            record.period, result.online_count, record.summary.online_count,
        )
    return result
