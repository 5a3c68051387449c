"""
정산 결과 데이터 모델
=====================
정산 항목(flow), 채널별 상세, 상계 입금액, 월/누적 정산 결과
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from .company import CompanySettlement


@dataclass
class SettlementFlow:
    """
    정산 항목 1건 (발행처 → 수취처)

    발행처(source)가 계산서를 발행하고 금액을 받으며, 수취처(destination)가 지급합니다.
    is_revenue가 False인 항목은 발행처의 매출이 아닌 수익으로만 잡힙니다.
    """
    id: str
    source: str
    destination: str
    is_revenue: bool
    amount: int
    description: str = ""


@dataclass
class ChannelLine:
    """채널별 상세 (현장 판매는 code="OFFLINE")"""
    code: str
    name: str
    count: int
    fee_rate: float
    gross: int       # 기본단가 × 인원
    fee: int         # 채널 수수료
    net: int         # 수수료 차감 후


@dataclass
class NetTransfer:
    """회사 쌍별 상계 입금액"""
    pair: str
    from_code: str
    to_code: str
    amount: int
    description: str = ""


@dataclass
class SettlementResult:
    """월 정산 결과"""
    online_count: int
    offline_count: int
    flows: List[SettlementFlow] = field(default_factory=list)
    companies: List[CompanySettlement] = field(default_factory=list)
    channel_breakdown: List[ChannelLine] = field(default_factory=list)
    net_transfers: List[NetTransfer] = field(default_factory=list)
    agency_base: int = 0  # 대행 수수료 계산 기준 (SKP 순이익)

    @property
    def total_count(self) -> int:
        return self.online_count + self.offline_count

    @property
    def amounts(self) -> Dict[str, int]:
        return {f.id: f.amount for f in self.flows}

    def company(self, code: str) -> Optional[CompanySettlement]:
        for c in self.companies:
            if c.code == code:
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_count"] = self.total_count
        data["amounts"] = self.amounts
        return data


@dataclass
class MonthlyLine:
    """누적 정산 내 월별 요약"""
    year: int
    month: int
    amounts: Dict[str, int]
    online_count: int
    offline_count: int

    @property
    def visitors(self) -> int:
        return self.online_count + self.offline_count


@dataclass
class CumulativeSettlement:
    """연간/전체 누적 정산 결과"""
    mode: str                      # "yearly" or "all"
    year: Optional[int]
    month_count: int
    total_online: int
    total_offline: int
    amounts: Dict[str, int] = field(default_factory=dict)
    companies: List[CompanySettlement] = field(default_factory=list)
    monthly: List[MonthlyLine] = field(default_factory=list)
    available_years: List[int] = field(default_factory=list)

    @property
    def total_visitors(self) -> int:
        return self.total_online + self.total_offline

    def company(self, code: str) -> Optional[CompanySettlement]:
        for c in self.companies:
            if c.code == code:
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["total_visitors"] = self.total_visitors
        for line in data["monthly"]:
            line["visitors"] = line["online_count"] + line["offline_count"]
        return data
