"""
방문객 기록 데이터 모델
=======================
일별 기록(DailyRecord)과 월별 집계 루트(MonthlyRecord)

MonthlyRecord의 summary / channels / categories는 days와 항상 일치해야 하며,
settlement는 summary + 채널/카테고리 맵으로부터 재계산되는 파생값입니다.
"""

from dataclasses import dataclass, field
from datetime import date as Date
from typing import Any, Dict, List, Optional, Union

from ..exceptions import InvalidInputError
from .settlement import SettlementResult


DateLike = Union[Date, str]


def parse_date(value: DateLike) -> Date:
    """'YYYY-MM-DD' 문자열 또는 date를 date로 변환"""
    if isinstance(value, Date):
        return value
    try:
        return Date.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidInputError(f"잘못된 날짜 형식: {value!r} (YYYY-MM-DD)")


def _validate_breakdown(label: str, total: int, breakdown: Dict[str, int]) -> None:
    for key, count in breakdown.items():
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise InvalidInputError(f"{label} 내역 '{key}'의 인원이 올바르지 않습니다: {count!r}")
    if total > 0 and not breakdown:
        raise InvalidInputError(f"{label} 인원이 {total}명인데 내역이 비어 있습니다")
    if sum(breakdown.values()) != total:
        raise InvalidInputError(
            f"{label} 내역 합계({sum(breakdown.values())})가 총 인원({total})과 다릅니다"
        )


@dataclass
class DailyRecord:
    """하루치 방문객 기록"""
    date: Date
    online: int = 0
    offline: int = 0
    online_breakdown: Dict[str, int] = field(default_factory=dict)   # 채널코드 → 인원
    offline_breakdown: Dict[str, int] = field(default_factory=dict)  # 카테고리코드 → 인원

    @property
    def total(self) -> int:
        return self.online + self.offline

    def validate(self) -> None:
        """음수 인원, 내역 누락, 내역 합계 불일치 시 InvalidInputError"""
        for label, value in (("온라인", self.online), ("현장", self.offline)):
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise InvalidInputError(f"{self.date} {label} 인원이 올바르지 않습니다: {value!r}")
        _validate_breakdown(f"{self.date} 온라인", self.online, self.online_breakdown)
        _validate_breakdown(f"{self.date} 현장", self.offline, self.offline_breakdown)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "online": self.online,
            "offline": self.offline,
            "total": self.total,
            "online_breakdown": dict(self.online_breakdown),
            "offline_breakdown": dict(self.offline_breakdown),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DailyRecord":
        return cls(
            date=parse_date(data["date"]),
            online=data.get("online", 0),
            offline=data.get("offline", 0),
            online_breakdown=dict(data.get("online_breakdown") or {}),
            offline_breakdown=dict(data.get("offline_breakdown") or {}),
        )


@dataclass
class Summary:
    """월 합계 (days의 합과 항상 같아야 함)"""
    online_count: int = 0
    offline_count: int = 0

    @property
    def total_count(self) -> int:
        return self.online_count + self.offline_count

    def to_dict(self) -> Dict[str, int]:
        return {
            "online_count": self.online_count,
            "offline_count": self.offline_count,
            "total_count": self.total_count,
        }


@dataclass
class ChannelSales:
    """채널별 누적 판매 (수수료율은 집계 시점 스냅샷)"""
    name: str
    count: int = 0
    fee_rate: float = 0.0


@dataclass
class CategorySales:
    """카테고리별 누적 판매"""
    name: str
    count: int = 0


@dataclass
class MonthlyRecord:
    """월별 집계 루트"""
    year: int
    month: int
    days: List[DailyRecord] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    channels: Dict[str, ChannelSales] = field(default_factory=dict)
    categories: Dict[str, CategorySales] = field(default_factory=dict)
    settlement: Optional[SettlementResult] = None
    file_name: str = ""
    uploaded_at: Optional[str] = None

    @property
    def period(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def find_day(self, day: DateLike) -> Optional[int]:
        """해당 날짜의 days 인덱스 (없으면 None)"""
        target = parse_date(day)
        for idx, record in enumerate(self.days):
            if record.date == target:
                return idx
        return None

    def contains(self, day: Date) -> bool:
        return day.year == self.year and day.month == self.month

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "period": self.period,
            "file_name": self.file_name,
            "uploaded_at": self.uploaded_at,
            "summary": self.summary.to_dict(),
            "days": [d.to_dict() for d in self.days],
            "channels": {
                code: {"name": c.name, "count": c.count, "fee_rate": c.fee_rate}
                for code, c in self.channels.items()
            },
            "categories": {
                code: {"name": c.name, "count": c.count}
                for code, c in self.categories.items()
            },
            "settlement": self.settlement.to_dict() if self.settlement else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MonthlyRecord":
        """저장된 dict에서 복원 (settlement는 저장값을 믿지 않고 None으로 둠)"""
        summary = data.get("summary") or {}
        return cls(
            year=int(data["year"]),
            month=int(data["month"]),
            days=[DailyRecord.from_dict(d) for d in data.get("days", [])],
            summary=Summary(
                online_count=summary.get("online_count", 0),
                offline_count=summary.get("offline_count", 0),
            ),
            channels={
                code: ChannelSales(
                    name=c.get("name", code),
                    count=c.get("count", 0),
                    fee_rate=c.get("fee_rate", 0.0),
                )
                for code, c in (data.get("channels") or {}).items()
            },
            categories={
                code: CategorySales(name=c.get("name", code), count=c.get("count", 0))
                for code, c in (data.get("categories") or {}).items()
            },
            settlement=None,
            file_name=data.get("file_name", ""),
            uploaded_at=data.get("uploaded_at"),
        )
