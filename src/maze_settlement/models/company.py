"""
Company 데이터 모델
==================
정산 당사자 기업 정보 및 기업별 정산 결과 데이터 클래스
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


# 정산 당사자 4개사 (표시 순서 고정)
COMPANY_CODES = ("SKP", "MAZE", "CULTURE", "AGENCY")


@dataclass
class Company:
    """기업 정보"""
    code: str
    name: str
    type: str = ""  # "플랫폼", "운영사", "마케팅", "대행사"


DEFAULT_COMPANIES: Dict[str, Company] = {
    "SKP": Company(code="SKP", name="SKP", type="플랫폼"),
    "MAZE": Company(code="MAZE", name="메이즈랜드", type="운영사"),
    "CULTURE": Company(code="CULTURE", name="컬처커넥션", type="마케팅"),
    "AGENCY": Company(code="AGENCY", name="FMC", type="대행사"),
}


@dataclass
class CompanySettlement:
    """기업별 정산 결과 (금액 필드가 None이면 마스킹된 행)"""
    code: str
    name: str
    revenue: Optional[int] = 0      # 매출 (발행처 & 매출 항목)
    income: Optional[int] = 0       # 수익 (매출 + 비매출 수취분)
    expense: Optional[int] = 0      # 비용 (수취처 항목)
    profit: Optional[int] = 0       # 이익 = 수익 - 비용
    profit_rate: Optional[float] = 0.0  # 이익률 (%)
    redacted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
