"""
월 집계 관리
============
일별 기록 → 월 요약(MonthlyRecord) 일관성 유지

- build_monthly_record   : 업로드된 일별 기록으로 월 기록 생성
- ingest_daily_records   : 새 날짜 추가 (기존 날짜는 merge=True일 때 보정으로 처리)
- apply_daily_correction : 기존 하루 보정 (요약은 증분 O(1), 정산은 전체 재계산)
- check_consistency      : 요약/맵이 일별 기록과 일치하는지 전수 점검
- rebuild_from_days      : 일별 기록으로부터 요약/맵 재구성

보정은 각 날짜에 보관된 기존 채널/카테고리 내역과 새 내역의 키별 차이로
채널/카테고리 맵을 갱신하므로 정확하게 역산됩니다.
모든 작업은 사본에서 수행하며, 오류 시 입력 기록은 변경되지 않습니다.
호출자는 같은 (년, 월)에 대한 보정을 배타적으로 실행해야 합니다 (ArchiveStore.period_lock).
"""

import copy
import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from ..exceptions import InvalidInputError, NotFoundError
from ..models.record import (
    CategorySales,
    ChannelSales,
    DailyRecord,
    DateLike,
    MonthlyRecord,
    Summary,
    parse_date,
)
from ..models.settlement import SettlementResult
from .config import DEFAULT_CONFIG, SettlementConfig
from .fee_policy import MonthlyFeeSettings
from .ledger import compute_monthly_settlement
from .master_data import DEFAULT_MASTER, MasterData

logger = logging.getLogger(__name__)


@dataclass
class CorrectionResult:
    """보정 결과 (갱신된 월 기록과 요약/정산)"""
    record: MonthlyRecord
    summary: Summary
    settlement: SettlementResult


# ────────────────────────────────────────────
# 내부 헬퍼
# ────────────────────────────────────────────

def _check_unknown_keys(day: DailyRecord, master: MasterData, strict: bool) -> None:
    unknown_channels = master.unknown_channels(day.online_breakdown)
    unknown_categories = master.unknown_categories(day.offline_breakdown)
    if not unknown_channels and not unknown_categories:
        return
    message = f"{day.date} 마스터에 없는 코드 - 채널: {unknown_channels}, 카테고리: {unknown_categories}"
    if strict:
        raise InvalidInputError(message)
    logger.warning(message)


def _new_channel_sales(
    code: str,
    master: MasterData,
    fee_settings: Optional[MonthlyFeeSettings] = None,
    unknown_fee_rate: float = 0.0,
) -> ChannelSales:
    """새 채널 맵 항목 (마스터에도 월 수수료 설정에도 없는 채널은 unknown_fee_rate)"""
    known = master.get_channel(code) is not None
    if fee_settings is not None and (known or fee_settings.channel_fee(code) is not None):
        fee_rate = fee_settings.average_fee_rate(code)
    elif known:
        fee_rate = master.channel_fee_rate(code)
    else:
        fee_rate = unknown_fee_rate
    return ChannelSales(name=master.channel_name(code), count=0, fee_rate=fee_rate)


def _apply_breakdown_delta(
    record: MonthlyRecord,
    old: Optional[DailyRecord],
    new: DailyRecord,
    master: MasterData,
    unknown_fee_rate: float = 0.0,
) -> None:
    """기존 내역(old)과 새 내역(new)의 키별 차이를 채널/카테고리 맵에 반영"""
    old_online = old.online_breakdown if old else {}
    old_offline = old.offline_breakdown if old else {}

    for code in list(old_online) + [k for k in new.online_breakdown if k not in old_online]:
        delta = new.online_breakdown.get(code, 0) - old_online.get(code, 0)
        if delta == 0:
            continue
        if code not in record.channels:
            record.channels[code] = _new_channel_sales(code, master, unknown_fee_rate=unknown_fee_rate)
        record.channels[code].count += delta
        if record.channels[code].count < 0:
            raise InvalidInputError(
                f"{record.period} 채널 '{code}' 누적 인원이 음수가 됩니다 (집계 불일치)"
            )

    for code in list(old_offline) + [k for k in new.offline_breakdown if k not in old_offline]:
        delta = new.offline_breakdown.get(code, 0) - old_offline.get(code, 0)
        if delta == 0:
            continue
        if code not in record.categories:
            record.categories[code] = CategorySales(name=master.category_name(code), count=0)
        record.categories[code].count += delta
        if record.categories[code].count < 0:
            raise InvalidInputError(
                f"{record.period} 카테고리 '{code}' 누적 인원이 음수가 됩니다 (집계 불일치)"
            )


def _check_month(record: MonthlyRecord, day: DailyRecord) -> None:
    if not record.contains(day.date):
        raise InvalidInputError(f"{day.date}는 {record.period}에 속하지 않습니다")


# ────────────────────────────────────────────
# 월 기록 생성 / 추가
# ────────────────────────────────────────────

def build_monthly_record(
    year: int,
    month: int,
    days: Iterable[DailyRecord],
    master: MasterData = DEFAULT_MASTER,
    config: SettlementConfig = DEFAULT_CONFIG,
    fee_settings: Optional[MonthlyFeeSettings] = None,
    file_name: str = "",
    strict: bool = False,
) -> MonthlyRecord:
    """
    일별 기록으로 월 기록 생성

    채널 수수료율은 fee_settings가 있으면 월 평균 수수료율을, 없으면 마스터 수수료율을
    스냅샷으로 저장합니다. 마스터에 없는 채널은 정산 원장과 같이 수수료 0%입니다.

    Raises:
        InvalidInputError: 잘못된 일별 기록, 다른 달 날짜, 중복 날짜,
                           (strict=True일 때) 마스터에 없는 코드
    """
    if not 1 <= month <= 12:
        raise InvalidInputError(f"잘못된 월: {month}")

    record = MonthlyRecord(year=year, month=month, file_name=file_name)
    seen = set()
    for day in days:
        day.validate()
        _check_month(record, day)
        _check_unknown_keys(day, master, strict)
        if day.date in seen:
            raise InvalidInputError(f"중복된 날짜: {day.date}")
        seen.add(day.date)

        record.days.append(copy.deepcopy(day))
        record.summary.online_count += day.online
        record.summary.offline_count += day.offline
        for code, count in day.online_breakdown.items():
            if code not in record.channels:
                record.channels[code] = _new_channel_sales(code, master, fee_settings)
            record.channels[code].count += count
        for code, count in day.offline_breakdown.items():
            if code not in record.categories:
                record.categories[code] = CategorySales(name=master.category_name(code), count=0)
            record.categories[code].count += count

    record.days.sort(key=lambda d: d.date)
    record.uploaded_at = datetime.now().isoformat()
    record.settlement = compute_monthly_settlement(record, config)
    logger.info(
        "%s 월 기록 생성: %d일, 온라인 %d명, 현장 %d명",
        record.period, len(record.days),
        record.summary.online_count, record.summary.offline_count,
    )
    return record


def ingest_daily_records(
    record: MonthlyRecord,
    days: Iterable[DailyRecord],
    merge: bool = True,
    master: MasterData = DEFAULT_MASTER,
    config: SettlementConfig = DEFAULT_CONFIG,
    strict: bool = False,
) -> MonthlyRecord:
    """
    기존 월 기록에 일별 기록 추가

    새 날짜는 정렬 위치에 삽입하고, 이미 있는 날짜는 merge=True이면 보정으로 적용,
    merge=False이면 InvalidInputError. 정산은 마지막에 한 번 재계산합니다.
    """
    working = copy.deepcopy(record)
    added = corrected = 0

    for day in days:
        day.validate()
        _check_month(working, day)
        _check_unknown_keys(day, master, strict)
        day = copy.deepcopy(day)

        idx = working.find_day(day.date)
        if idx is None:
            _apply_breakdown_delta(working, None, day, master)
            working.summary.online_count += day.online
            working.summary.offline_count += day.offline
            working.days.append(day)
            working.days.sort(key=lambda d: d.date)
            added += 1
        elif merge:
            old = working.days[idx]
            _apply_breakdown_delta(working, old, day, master)
            working.summary.online_count += day.online - old.online
            working.summary.offline_count += day.offline - old.offline
            working.days[idx] = day
            corrected += 1
        else:
            raise InvalidInputError(f"{day.date} 데이터가 이미 존재합니다 (merge=False)")

    working.uploaded_at = datetime.now().isoformat()
    working.settlement = compute_monthly_settlement(working, config)
    logger.info("%s 일별 기록 반영: 추가 %d일, 보정 %d일", working.period, added, corrected)
    return working


# ────────────────────────────────────────────
# 하루 보정
# ────────────────────────────────────────────

def apply_daily_correction(
    record: Optional[MonthlyRecord],
    day: DateLike,
    new_online: int,
    new_offline: int,
    new_online_breakdown: Dict[str, int],
    new_offline_breakdown: Dict[str, int],
    master: MasterData = DEFAULT_MASTER,
    config: SettlementConfig = DEFAULT_CONFIG,
) -> CorrectionResult:
    """
    이미 입력된 하루의 방문객 수 보정

    - 요약은 (새 값 - 기존 값) 증분으로 갱신 (일수와 무관하게 O(1))
    - 채널/카테고리 맵은 해당 날짜의 기존 내역과 새 내역의 키별 차이로 갱신
    - 새 채널은 마스터 수수료율(없으면 기본 15%)로 맵에 추가
    - 정산은 전체 재계산

    Raises:
        NotFoundError: 월 기록이 없거나 해당 날짜가 기록에 없음
        InvalidInputError: 음수 인원, 내역 합계 불일치
    """
    if record is None:
        raise NotFoundError("해당 월의 기록이 없습니다")

    target = parse_date(day)
    new_day = DailyRecord(
        date=target,
        online=new_online,
        offline=new_offline,
        online_breakdown=dict(new_online_breakdown),
        offline_breakdown=dict(new_offline_breakdown),
    )
    new_day.validate()

    idx = record.find_day(target)
    if idx is None:
        raise NotFoundError(f"{record.period}에 {target} 데이터가 없습니다")

    working = copy.deepcopy(record)
    old = working.days[idx]
    online_delta = new_online - old.online
    offline_delta = new_offline - old.offline

    _apply_breakdown_delta(working, old, new_day, master, config.default_channel_fee_rate)
    working.summary.online_count += online_delta
    working.summary.offline_count += offline_delta
    working.days[idx] = new_day
    working.settlement = compute_monthly_settlement(working, config)

    logger.info(
        "%s 보정: 온라인 %+d, 현장 %+d → 합계 %d명",
        target, online_delta, offline_delta, working.summary.total_count,
    )
    return CorrectionResult(record=working, summary=working.summary, settlement=working.settlement)


# ────────────────────────────────────────────
# 점검 / 재구성
# ────────────────────────────────────────────

def check_consistency(record: MonthlyRecord, master: Optional[MasterData] = None) -> Dict[str, Any]:
    """
    월 기록 전수 점검

    Returns:
        {"valid": bool, "errors": [...], "warnings": [...]}
    """
    errors: List[str] = []
    warnings: List[str] = []

    seen = set()
    previous = None
    channel_sums: Dict[str, int] = {}
    category_sums: Dict[str, int] = {}
    online = offline = 0

    for day in record.days:
        try:
            day.validate()
        except InvalidInputError as e:
            errors.append(str(e))
        if not record.contains(day.date):
            errors.append(f"{day.date}는 {record.period}에 속하지 않습니다")
        if day.date in seen:
            errors.append(f"중복된 날짜: {day.date}")
        if previous and day.date < previous:
            errors.append(f"날짜 순서가 올바르지 않습니다: {previous} → {day.date}")
        seen.add(day.date)
        previous = day.date

        online += day.online
        offline += day.offline
        for code, count in day.online_breakdown.items():
            channel_sums[code] = channel_sums.get(code, 0) + count
        for code, count in day.offline_breakdown.items():
            category_sums[code] = category_sums.get(code, 0) + count

    if record.summary.online_count != online:
        errors.append(f"온라인 요약({record.summary.online_count}) ≠ 일별 합계({online})")
    if record.summary.offline_count != offline:
        errors.append(f"현장 요약({record.summary.offline_count}) ≠ 일별 합계({offline})")

    for code in sorted(set(channel_sums) | set(record.channels)):
        mapped = record.channels[code].count if code in record.channels else 0
        if mapped != channel_sums.get(code, 0):
            errors.append(f"채널 '{code}' 누적({mapped}) ≠ 일별 내역 합계({channel_sums.get(code, 0)})")
    for code in sorted(set(category_sums) | set(record.categories)):
        mapped = record.categories[code].count if code in record.categories else 0
        if mapped != category_sums.get(code, 0):
            errors.append(f"카테고리 '{code}' 누적({mapped}) ≠ 일별 내역 합계({category_sums.get(code, 0)})")

    if master is not None:
        for code in master.unknown_channels(record.channels):
            warnings.append(f"마스터에 없는 채널: {code}")
        for code in master.unknown_categories(record.categories):
            warnings.append(f"마스터에 없는 카테고리: {code}")

    if record.settlement is None:
        warnings.append("정산 결과가 계산되지 않았습니다")

    return {"valid": not errors, "errors": errors, "warnings": warnings}


def rebuild_from_days(
    record: MonthlyRecord,
    master: MasterData = DEFAULT_MASTER,
    config: SettlementConfig = DEFAULT_CONFIG,
) -> MonthlyRecord:
    """일별 기록으로부터 요약/맵을 다시 만듦 (기존 채널 수수료율 스냅샷은 유지)"""
    rebuilt = replace(
        copy.deepcopy(record),
        summary=Summary(),
        channels={},
        categories={},
    )
    rebuilt.days.sort(key=lambda d: d.date)
    for day in rebuilt.days:
        day.validate()
        rebuilt.summary.online_count += day.online
        rebuilt.summary.offline_count += day.offline
        for code, count in day.online_breakdown.items():
            if code not in rebuilt.channels:
                previous = record.channels.get(code)
                rebuilt.channels[code] = (
                    ChannelSales(name=previous.name, count=0, fee_rate=previous.fee_rate)
                    if previous else _new_channel_sales(code, master)
                )
            rebuilt.channels[code].count += count
        for code, count in day.offline_breakdown.items():
            if code not in rebuilt.categories:
                rebuilt.categories[code] = CategorySales(name=master.category_name(code), count=0)
            rebuilt.categories[code].count += count

    rebuilt.settlement = compute_monthly_settlement(rebuilt, config)
    logger.info("%s 요약 재구성 완료", rebuilt.period)
    return rebuilt


def with_settlement(record: MonthlyRecord, config: SettlementConfig = DEFAULT_CONFIG) -> MonthlyRecord:
    """정산 결과를 다시 계산해 붙인 기록 (저장소에서 불러온 직후 사용)"""
    return replace(record, settlement=compute_monthly_settlement(record, config))
