"""
수수료 반영 정산 단가
=====================
방문객 1인이 특정 채널(또는 현장)을 통해 입장했을 때 각 정산 항목에 흐르는 금액을 계산합니다.

- 고정 단가 항목: 단가 × (1 - 수수료율/100)
- 현장 판매: 수수료율 0
- 대행 수수료(파생 항목): 1단계 고정 단가 항목이 모두 계산된 뒤
  SKP 인당 순이익 × 대행 수수료율로 2단계에서 계산

모든 값은 Decimal 그대로 반환하며, 반올림은 정산 결과를 만들 때 한 번만 합니다.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional, Union

from ..exceptions import InvalidRateError
from .config import AGENCY_RELATIONSHIP_ID, DEFAULT_CONFIG, SettlementConfig

Rate = Union[int, float, Decimal]

HUNDRED = Decimal("100")
OFFLINE_CODE = "OFFLINE"


@dataclass(frozen=True)
class FlowContext:
    """
    방문객 유입 경로 (채널 코드와 수수료율)

    현장 판매 여부는 코드가 아니라 is_offline으로 구분합니다.
    ("OFFLINE"이라는 채널 코드도 일반 채널로 수수료가 적용됨)
    """
    channel_code: str
    fee_rate: Rate = 0
    is_offline: bool = False

    @classmethod
    def offline(cls) -> "FlowContext":
        return cls(OFFLINE_CODE, 0, is_offline=True)


def to_decimal(value: Rate) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def fee_multiplier(fee_rate: Rate) -> Decimal:
    """1 - 수수료율/100 (0~100 범위 밖이면 InvalidRateError)"""
    rate = to_decimal(fee_rate)
    if not rate.is_finite() or rate < 0 or rate > HUNDRED:
        raise InvalidRateError(f"수수료율은 0~100 사이여야 합니다: {fee_rate}")
    return 1 - rate / HUNDRED


def primary_amounts_per_visitor(
    context: FlowContext, config: SettlementConfig = DEFAULT_CONFIG
) -> Dict[str, Decimal]:
    """1단계: 고정 단가 항목별 인당 금액"""
    multiplier = fee_multiplier(0 if context.is_offline else context.fee_rate)
    return {rel.id: rel.unit * multiplier for rel in config.relationships}


def agency_base_per_visitor(
    primary: Dict[str, Decimal], config: SettlementConfig = DEFAULT_CONFIG
) -> Decimal:
    """대행 수수료 계산 기준인 SKP 인당 순이익 (1단계 결과로부터)"""
    return sum(
        (primary[rel_id] * sign for rel_id, sign in config.agency_profit_terms.items()),
        Decimal(0),
    )


def agency_amount_per_visitor(
    context: FlowContext, config: SettlementConfig = DEFAULT_CONFIG
) -> Decimal:
    """2단계: 대행 수수료 인당 금액"""
    base = agency_base_per_visitor(primary_amounts_per_visitor(context, config), config)
    return base * config.agency_fee_rate / HUNDRED


def flow_amount_per_visitor(
    relationship_id: str,
    context: Optional[FlowContext] = None,
    config: SettlementConfig = DEFAULT_CONFIG,
) -> Decimal:
    """
    정산 항목 1건의 인당 금액

    Args:
        relationship_id: 정산 항목 ID (예: "SKP_TO_MAZE_REVENUE")
        context: 유입 경로 (None이면 현장 판매)

    Raises:
        InvalidRateError: 수수료율이 0~100 범위를 벗어남
        InvalidInputError: 알 수 없는 정산 항목
    """
    context = context or FlowContext.offline()
    if relationship_id == AGENCY_RELATIONSHIP_ID:
        return agency_amount_per_visitor(context, config)
    rel = config.relationship(relationship_id)
    return rel.unit * fee_multiplier(0 if context.is_offline else context.fee_rate)
