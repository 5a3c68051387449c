"""
정산 설정
=========
정산 계산에 쓰이는 파라미터(기본단가, 정산 항목별 인당 단가, 대행 수수료율)를 한곳에서 관리합니다.
config/settlement_config.json이 있으면 해당 값으로 덮어씁니다.

정산 항목 (발행처 → 수취처, 발행처가 금액을 받음):
    SKP_TO_MAZE_REVENUE        SKP → 메이즈랜드   3,000원  매출 (총매출 건)
    MAZE_TO_SKP_OPERATION      메이즈랜드 → SKP   1,000원  매출 (운영 수수료)
    CULTURE_TO_SKP             컬처커넥션 → SKP   1,000원  매출 (플랫폼 비용)
    SKP_TO_CULTURE_PLATFORM    SKP → 컬처커넥션     200원  매출 (플랫폼 이용료)
    SKP_TO_MAZE_CULTURE_SHARE  SKP → 메이즈랜드     500원  비매출 (컬처 분담금 인보이스)
    FMC_TO_SKP_AGENCY          FMC → SKP          SKP 순이익의 20%  매출 (운영대행 수수료)
"""

import json
import logging
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

from ..exceptions import InvalidInputError, InvalidRateError
from .. import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Relationship:
    """고정 단가 정산 항목 (인당, 수수료 차감 전)"""
    id: str
    source: str
    destination: str
    unit: int
    is_revenue: bool = True
    description: str = ""


AGENCY_RELATIONSHIP_ID = "FMC_TO_SKP_AGENCY"
REVENUE_RELATIONSHIP_ID = "SKP_TO_MAZE_REVENUE"

DEFAULT_RELATIONSHIPS: List[Relationship] = [
    Relationship("SKP_TO_MAZE_REVENUE", "SKP", "MAZE", 3000, True,
                 "총매출 건 (인당 3,000원, 수수료 차감)"),
    Relationship("MAZE_TO_SKP_OPERATION", "MAZE", "SKP", 1000, True,
                 "운영 수수료 (인당 1,000원, 수수료 차감)"),
    Relationship("CULTURE_TO_SKP", "CULTURE", "SKP", 1000, True,
                 "플랫폼 비용 (인당 1,000원, 수수료 차감)"),
    Relationship("SKP_TO_CULTURE_PLATFORM", "SKP", "CULTURE", 200, True,
                 "플랫폼 이용료 (1,000원의 20%, 수수료 차감)"),
    Relationship("SKP_TO_MAZE_CULTURE_SHARE", "SKP", "MAZE", 500, False,
                 "컬처 분담금 (인당 500원, 메이즈 부담분 인보이스)"),
]

# SKP 티켓 순이익 = 매출 - 메이즈 R/S - 컬처 R/S + 메이즈 비용분담금
# 플랫폼 이용료(SKP → 컬처)는 제외
DEFAULT_AGENCY_PROFIT_TERMS: Dict[str, int] = {
    "SKP_TO_MAZE_REVENUE": 1,
    "MAZE_TO_SKP_OPERATION": -1,
    "CULTURE_TO_SKP": -1,
    "SKP_TO_MAZE_CULTURE_SHARE": 1,
}


@dataclass(frozen=True)
class SettlementConfig:
    base_price: int = 3000
    relationships: List[Relationship] = field(default_factory=lambda: list(DEFAULT_RELATIONSHIPS))
    agency_fee_rate: Decimal = Decimal("20")           # %
    agency_source: str = "AGENCY"
    agency_destination: str = "SKP"
    agency_profit_terms: Dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_AGENCY_PROFIT_TERMS)
    )
    default_channel_fee_rate: float = 15.0            # 신규 채널 기본 수수료율 (%)
    hub_company: str = "SKP"                          # 상계 입금액 기준 회사

    def relationship(self, relationship_id: str) -> Relationship:
        for rel in self.relationships:
            if rel.id == relationship_id:
                return rel
        raise InvalidInputError(f"알 수 없는 정산 항목: {relationship_id}")

    @property
    def relationship_ids(self) -> List[str]:
        return [rel.id for rel in self.relationships] + [AGENCY_RELATIONSHIP_ID]

    @property
    def agency_relationship(self) -> Relationship:
        return Relationship(
            AGENCY_RELATIONSHIP_ID,
            self.agency_source,
            self.agency_destination,
            0,
            True,
            f"운영대행 수수료 (SKP 순이익의 {self.agency_fee_rate}%)",
        )


DEFAULT_CONFIG = SettlementConfig()


def _check_rate(name: str, value) -> Decimal:
    """설정 파일의 수수료율 (0~100, 아니면 InvalidRateError)"""
    try:
        rate = Decimal(str(value))
    except InvalidOperation:
        raise InvalidRateError(f"{name} 값이 숫자가 아닙니다: {value!r}")
    if not rate.is_finite() or rate < 0 or rate > 100:
        raise InvalidRateError(f"{name}은(는) 0~100 사이여야 합니다: {value}")
    return rate


def load_settlement_config(path: Optional[Path] = None) -> SettlementConfig:
    """설정 파일 로드 (파일이 없으면 기본값)"""
    config_path = Path(path) if path else settings.CONFIG_DIR / "settlement_config.json"
    if not config_path.exists():
        return DEFAULT_CONFIG

    with open(config_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    units = data.get("units", {})
    unknown = set(units) - {rel.id for rel in DEFAULT_RELATIONSHIPS}
    if unknown:
        raise InvalidInputError(f"설정 파일에 알 수 없는 정산 항목: {sorted(unknown)}")

    relationships = [
        replace(rel, unit=int(units.get(rel.id, rel.unit))) for rel in DEFAULT_RELATIONSHIPS
    ]
    for rel in relationships:
        if rel.unit < 0:
            raise InvalidInputError(f"정산 항목 단가는 0 이상이어야 합니다: {rel.id}={rel.unit}")

    # 채널별 총액(기본단가 × 인원)과 총매출 건이 같은 단가를 써야 함
    revenue_unit = next(rel.unit for rel in relationships if rel.id == REVENUE_RELATIONSHIP_ID)
    base_price = int(data.get("base_price", revenue_unit))
    if base_price != revenue_unit:
        raise InvalidInputError(
            f"기본단가({base_price})와 {REVENUE_RELATIONSHIP_ID} 단가({revenue_unit})가 다릅니다"
        )

    config = replace(
        DEFAULT_CONFIG,
        base_price=base_price,
        relationships=relationships,
        agency_fee_rate=_check_rate(
            "agency_fee_rate", data.get("agency_fee_rate", DEFAULT_CONFIG.agency_fee_rate)
        ),
        default_channel_fee_rate=float(_check_rate(
            "default_channel_fee_rate",
            data.get("default_channel_fee_rate", DEFAULT_CONFIG.default_channel_fee_rate),
        )),
    )
    logger.info("정산 설정 로드: %s", config_path)
    return config
