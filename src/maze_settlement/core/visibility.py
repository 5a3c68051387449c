"""
조회 권한별 마스킹
==================
조회자가 볼 수 있는 회사 외의 행은 금액(매출/수익/비용/이익/이익률)을 가리고 회사명만 남깁니다.
원본 정산 결과는 변경하지 않습니다.
"""

from dataclasses import replace
from typing import FrozenSet, Iterable, List, Optional

from ..models.company import COMPANY_CODES, CompanySettlement
from ..models.settlement import SettlementFlow

ALL_COMPANIES: FrozenSet[str] = frozenset(COMPANY_CODES)

# 역할 → 조회 가능 회사
ROLE_VIEWABLE = {
    "SUPER_ADMIN": ALL_COMPANIES,
    "SKP_ADMIN": ALL_COMPANIES,
    "MAZE_ADMIN": frozenset({"MAZE"}),
    "CULTURE_ADMIN": frozenset({"CULTURE"}),
    "AGENCY_ADMIN": frozenset({"AGENCY"}),
}


def viewable_company_codes(role: Optional[str], company_code: Optional[str] = None) -> FrozenSet[str]:
    """역할별 조회 가능 회사 (정의되지 않은 역할은 소속 회사만)"""
    if role in ROLE_VIEWABLE:
        return ROLE_VIEWABLE[role]
    return frozenset({company_code}) if company_code else frozenset()


def can_view_all(viewable_codes: Iterable[str]) -> bool:
    return ALL_COMPANIES <= set(viewable_codes)


def filter_for_viewer(
    companies: Iterable[CompanySettlement], viewable_codes: Iterable[str]
) -> List[CompanySettlement]:
    """조회 불가 회사의 금액을 None으로 가린 사본 목록"""
    viewable = set(viewable_codes)
    if can_view_all(viewable):
        return [replace(c) for c in companies]
    return [
        replace(c) if c.code in viewable else replace(
            c,
            revenue=None,
            income=None,
            expense=None,
            profit=None,
            profit_rate=None,
            redacted=True,
        )
        for c in companies
    ]


def flows_for_company(flows: Iterable[SettlementFlow], company_code: str) -> List[SettlementFlow]:
    """회사가 발행처 또는 수취처인 정산 항목"""
    return [f for f in flows if company_code in (f.source, f.destination)]


def filter_flows_for_viewer(
    flows: Iterable[SettlementFlow], viewable_codes: Iterable[str]
) -> List[SettlementFlow]:
    """조회 가능 회사가 관련된 정산 항목만"""
    viewable = set(viewable_codes)
    if can_view_all(viewable):
        return list(flows)
    return [f for f in flows if f.source in viewable or f.destination in viewable]
