"""
정산 항목 체크
==============
운영자가 (년, 월, 정산 항목)별로 입금/계산서 확인을 체크합니다.
체크 시점의 금액을 함께 저장해, 이후 데이터 보정으로 금액이 바뀌면 재확인 대상(stale)으로 표시합니다.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import InvalidInputError
from ..models.settlement import SettlementFlow


@dataclass
class SettlementCheck:
    checked: bool
    amount: int
    checked_at: Optional[str] = None
    checked_by: Optional[str] = None


@dataclass
class MonthlySettlementChecks:
    year: int
    month: int
    checks: Dict[str, SettlementCheck] = field(default_factory=dict)
    updated_at: Optional[str] = None

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def toggle(
        self,
        flow_id: str,
        checked: bool,
        amount: int,
        user_name: str,
        valid_ids: Optional[Iterable[str]] = None,
    ) -> "MonthlySettlementChecks":
        """항목 체크/해제 (해제 시 체크 시각/체크한 사람은 비움)"""
        if valid_ids is not None and flow_id not in set(valid_ids):
            raise InvalidInputError(f"알 수 없는 정산 항목: {flow_id}")
        now = datetime.now().isoformat()
        self.checks[flow_id] = SettlementCheck(
            checked=checked,
            amount=amount,
            checked_at=now if checked else None,
            checked_by=user_name if checked else None,
        )
        self.updated_at = now
        return self

    def is_checked(self, flow_id: str) -> bool:
        check = self.checks.get(flow_id)
        return bool(check and check.checked)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "checks": {
                flow_id: {
                    "checked": c.checked,
                    "checked_at": c.checked_at,
                    "checked_by": c.checked_by,
                    "amount": c.amount,
                }
                for flow_id, c in self.checks.items()
            },
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, year: int, month: int, data: Optional[Dict[str, Any]]) -> "MonthlySettlementChecks":
        data = data or {}
        return cls(
            year=year,
            month=month,
            checks={
                flow_id: SettlementCheck(
                    checked=bool(c.get("checked")),
                    amount=c.get("amount", 0),
                    checked_at=c.get("checked_at"),
                    checked_by=c.get("checked_by"),
                )
                for flow_id, c in (data.get("checks") or {}).items()
            },
            updated_at=data.get("updated_at"),
        )


def _rate(done: int, total: int) -> float:
    if total == 0:
        return 0.0
    value = Decimal(done) / Decimal(total) * 100
    return float(value.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def completion_rate(
    checks: MonthlySettlementChecks,
    flows: Iterable[SettlementFlow],
    company_code: Optional[str] = None,
) -> float:
    """체크 완료율 (%) - company_code가 있으면 해당 회사 관련 항목만"""
    targets = [
        f for f in flows
        if company_code is None or company_code in (f.source, f.destination)
    ]
    done = sum(1 for f in targets if checks.is_checked(f.id))
    return _rate(done, len(targets))


def company_completion_rates(
    checks: MonthlySettlementChecks, flows: Iterable[SettlementFlow], company_codes: Iterable[str]
) -> Dict[str, float]:
    flows = list(flows)
    return {code: completion_rate(checks, flows, code) for code in company_codes}


def stale_checks(checks: MonthlySettlementChecks, flows: Iterable[SettlementFlow]) -> List[str]:
    """체크 당시 금액과 현재 금액이 다른 항목 ID"""
    return [
        f.id for f in flows
        if f.id in checks.checks and checks.checks[f.id].checked
        and checks.checks[f.id].amount != f.amount
    ]
