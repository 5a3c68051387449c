"""
수수료 정책
===========
- 채널 × 월 기준 기본 수수료율
- 기간별 예외 (override)
- 특정 일자의 실제 적용 수수료율 / 월 평균 수수료율
"""

import calendar
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional

from ..exceptions import InvalidInputError, InvalidRateError, NotFoundError
from ..models.record import DateLike, parse_date
from .master_data import DEFAULT_FEE_RATE, DEFAULT_MASTER, MasterData

logger = logging.getLogger(__name__)


def _check_rate(rate: float) -> float:
    if rate is None or not (0 <= rate <= 100):
        raise InvalidRateError(f"수수료율은 0~100 사이여야 합니다: {rate}")
    return float(rate)


@dataclass
class ChannelMonthlyFee:
    channel_code: str
    channel_name: str
    fee_rate: float
    source: str = "default"  # "default", "excel", "manual"


@dataclass
class FeeOverride:
    """기간별 수수료 예외 (시작일~종료일 포함)"""
    id: str
    channel_code: str
    start_date: date
    end_date: date
    fee_rate: float
    reason: str = ""

    def covers(self, channel_code: str, day: date) -> bool:
        return self.channel_code == channel_code and self.start_date <= day <= self.end_date


@dataclass
class MonthlyFeeSettings:
    year: int
    month: int
    channels: List[ChannelMonthlyFee] = field(default_factory=list)
    overrides: List[FeeOverride] = field(default_factory=list)
    updated_at: str = ""
    master: MasterData = field(default=DEFAULT_MASTER, repr=False, compare=False)

    @classmethod
    def default(cls, year: int, month: int, master: MasterData = DEFAULT_MASTER) -> "MonthlyFeeSettings":
        """마스터 기본 수수료율로 월 설정 생성"""
        return cls(
            year=year,
            month=month,
            channels=[
                ChannelMonthlyFee(c.code, c.name, c.fee_rate) for c in master.active_channels()
            ],
            updated_at=datetime.now().isoformat(),
            master=master,
        )

    def channel_fee(self, channel_code: str) -> Optional[ChannelMonthlyFee]:
        for fee in self.channels:
            if fee.channel_code == channel_code:
                return fee
        return None

    # ────────────────────────────────────────────
    # 수수료율 조회
    # ────────────────────────────────────────────

    def base_fee_rate(self, channel_code: str) -> float:
        """월 기본값 → 마스터 기본값 → 15%"""
        fee = self.channel_fee(channel_code)
        if fee:
            return fee.fee_rate
        return self.master.channel_fee_rate(channel_code, DEFAULT_FEE_RATE)

    def fee_rate_for_date(self, channel_code: str, day: DateLike) -> float:
        """특정 일자의 적용 수수료율 (override 우선)"""
        target = parse_date(day)
        for override in self.overrides:
            if override.covers(channel_code, target):
                return override.fee_rate
        return self.base_fee_rate(channel_code)

    def all_fee_rates_for_date(self, day: DateLike) -> Dict[str, float]:
        codes = [c.code for c in self.master.active_channels()]
        codes += [fee.channel_code for fee in self.channels if fee.channel_code not in codes]
        return {code: self.fee_rate_for_date(code, day) for code in codes}

    def average_fee_rate(self, channel_code: str) -> float:
        """월 평균 수수료율 (override가 있으면 일자별 평균, 소수 둘째 자리)"""
        if not any(o.channel_code == channel_code for o in self.overrides):
            return self.base_fee_rate(channel_code)

        days_in_month = calendar.monthrange(self.year, self.month)[1]
        first = date(self.year, self.month, 1)
        total = sum(
            Decimal(str(self.fee_rate_for_date(channel_code, first + timedelta(days=i))))
            for i in range(days_in_month)
        )
        average = (total / days_in_month).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
        return float(average)

    # ────────────────────────────────────────────
    # 변경 (새 설정 반환)
    # ────────────────────────────────────────────

    def with_channel_fee(self, channel_code: str, fee_rate: float, source: str = "manual") -> "MonthlyFeeSettings":
        rate = _check_rate(fee_rate)
        channels = [
            replace(fee, fee_rate=rate, source=source) if fee.channel_code == channel_code else fee
            for fee in self.channels
        ]
        if self.channel_fee(channel_code) is None:
            channels.append(ChannelMonthlyFee(
                channel_code, self.master.channel_name(channel_code), rate, source
            ))
        return replace(self, channels=channels, updated_at=datetime.now().isoformat())

    def with_override(
        self,
        channel_code: str,
        start_date: DateLike,
        end_date: DateLike,
        fee_rate: float,
        reason: str = "",
    ) -> "MonthlyFeeSettings":
        rate = _check_rate(fee_rate)
        start, end = parse_date(start_date), parse_date(end_date)
        if start > end:
            raise InvalidInputError(f"시작일({start})이 종료일({end})보다 늦습니다")
        override = FeeOverride(
            id=f"{channel_code}-{uuid.uuid4().hex[:8]}",
            channel_code=channel_code,
            start_date=start,
            end_date=end,
            fee_rate=rate,
            reason=reason,
        )
        logger.info("수수료 예외 추가: %s %s~%s %.2f%%", channel_code, start, end, rate)
        return replace(
            self,
            overrides=self.overrides + [override],
            updated_at=datetime.now().isoformat(),
        )

    def without_override(self, override_id: str) -> "MonthlyFeeSettings":
        remaining = [o for o in self.overrides if o.id != override_id]
        if len(remaining) == len(self.overrides):
            raise NotFoundError(f"수수료 예외를 찾을 수 없습니다: {override_id}")
        return replace(self, overrides=remaining, updated_at=datetime.now().isoformat())

    # ────────────────────────────────────────────
    # 직렬화
    # ────────────────────────────────────────────

    def to_dict(self) -> Dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "channels": [
                {
                    "channel_code": c.channel_code,
                    "channel_name": c.channel_name,
                    "fee_rate": c.fee_rate,
                    "source": c.source,
                }
                for c in self.channels
            ],
            "overrides": [
                {
                    "id": o.id,
                    "channel_code": o.channel_code,
                    "start_date": o.start_date.isoformat(),
                    "end_date": o.end_date.isoformat(),
                    "fee_rate": o.fee_rate,
                    "reason": o.reason,
                }
                for o in self.overrides
            ],
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], master: MasterData = DEFAULT_MASTER) -> "MonthlyFeeSettings":
        return cls(
            year=int(data["year"]),
            month=int(data["month"]),
            channels=[
                ChannelMonthlyFee(
                    c["channel_code"],
                    c.get("channel_name", c["channel_code"]),
                    _check_rate(c["fee_rate"]),
                    c.get("source", "default"),
                )
                for c in data.get("channels", [])
            ],
            overrides=[
                FeeOverride(
                    id=o["id"],
                    channel_code=o["channel_code"],
                    start_date=parse_date(o["start_date"]),
                    end_date=parse_date(o["end_date"]),
                    fee_rate=_check_rate(o["fee_rate"]),
                    reason=o.get("reason", ""),
                )
                for o in data.get("overrides", [])
            ],
            updated_at=data.get("updated_at", ""),
            master=master,
        )
