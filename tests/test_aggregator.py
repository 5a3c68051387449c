"""
월 집계 테스트
==============
월 기록 생성, 일별 기록 추가, 하루 보정, 전수 점검, 재구성
"""
from datetime import date

import pytest

from maze_settlement.core.aggregator import (
    apply_daily_correction,
    build_monthly_record,
    check_consistency,
    ingest_daily_records,
    rebuild_from_days,
)
from maze_settlement.core.fee_policy import MonthlyFeeSettings
from maze_settlement.core.ledger import compute_monthly_settlement, compute_settlement
from maze_settlement.core.master_data import DEFAULT_MASTER
from maze_settlement.exceptions import InvalidInputError, NotFoundError
from maze_settlement.models.record import DailyRecord

from conftest import make_days


def _counts(record):
    return {code: c.count for code, c in record.channels.items() if c.count}


class TestBuildMonthlyRecord:

    def test_summary_and_maps(self, january_record):
        assert january_record.summary.online_count == 30
        assert january_record.summary.offline_count == 13
        assert _counts(january_record) == {"NAVER_MAZE_25": 26, "GENERAL_TICKET": 4}
        assert {c: s.count for c, s in january_record.categories.items()} == {
            "INDIVIDUAL": 5, "TAXI": 3, "RESIDENT": 5,
        }
        assert january_record.categories["TAXI"].name == "택시"
        assert january_record.file_name == "2025-01.xlsx"

    def test_fee_snapshot_from_master(self, january_record):
        assert january_record.channels["NAVER_MAZE_25"].fee_rate == 10
        assert january_record.channels["GENERAL_TICKET"].fee_rate == 15
        assert january_record.channels["NAVER_MAZE_25"].name == "네이버 메이즈랜드25년"

    def test_settlement_attached(self, january_record):
        assert january_record.settlement is not None
        assert january_record.settlement.total_count == 43

    def test_days_sorted(self):
        record = build_monthly_record(2025, 1, list(reversed(make_days())))
        assert [d.date.day for d in record.days] == [1, 2, 3]

    def test_duplicate_date(self):
        days = make_days()
        with pytest.raises(InvalidInputError):
            build_monthly_record(2025, 1, days + [days[0]])

    def test_other_month_date(self):
        with pytest.raises(InvalidInputError):
            build_monthly_record(2025, 2, make_days(2025, 1))

    def test_invalid_month(self):
        with pytest.raises(InvalidInputError):
            build_monthly_record(2025, 13, [])

    def test_strict_unknown_code(self):
        day = DailyRecord(date(2025, 1, 5), online=1, online_breakdown={"MYSTERY": 1})
        with pytest.raises(InvalidInputError):
            build_monthly_record(2025, 1, [day], strict=True)
        record = build_monthly_record(2025, 1, [day])
        assert record.channels["MYSTERY"].fee_rate == 0.0

    def test_unknown_channel_matches_ledger(self):
        """마스터에 없는 채널은 월 기록 경로에서도 수수료 0%로 정산"""
        day = DailyRecord(date(2025, 1, 5), online=10, online_breakdown={"RETIRED": 10})
        expected = compute_settlement({"RETIRED": 10}, 0, DEFAULT_MASTER).amounts

        record = build_monthly_record(2025, 1, [day])
        assert compute_monthly_settlement(record).amounts == expected
        assert record.settlement.amounts["SKP_TO_MAZE_REVENUE"] == 30000

        with_fees = build_monthly_record(2025, 1, [day], fee_settings=MonthlyFeeSettings.default(2025, 1))
        assert with_fees.channels["RETIRED"].fee_rate == 0.0

        ingested = ingest_daily_records(build_monthly_record(2025, 1, []), [day])
        assert ingested.settlement.amounts == expected

        ingested.channels.clear()
        assert rebuild_from_days(ingested).settlement.amounts == expected

    def test_fee_settings_average(self):
        """기간 예외가 있으면 월 평균 수수료율을 스냅샷으로 저장"""
        settings = MonthlyFeeSettings.default(2025, 2).with_override(
            "NAVER_MAZE_25", "2025-02-01", "2025-02-14", 5
        )
        record = build_monthly_record(2025, 2, make_days(2025, 2), fee_settings=settings)
        assert record.channels["NAVER_MAZE_25"].fee_rate == 7.5
        assert record.channels["GENERAL_TICKET"].fee_rate == 15

    def test_input_days_not_shared(self):
        days = make_days()
        record = build_monthly_record(2025, 1, days)
        days[0].online_breakdown["NAVER_MAZE_25"] = 999
        assert record.days[0].online_breakdown["NAVER_MAZE_25"] == 6


class TestApplyDailyCorrection:

    def test_scenario_c(self, january_record):
        """1일 온라인 10 → 15 (네이버 9, 일반 6)"""
        result = apply_daily_correction(
            january_record, "2025-01-01", 15, 5,
            {"NAVER_MAZE_25": 9, "GENERAL_TICKET": 6}, {"INDIVIDUAL": 5},
        )
        assert result.summary.online_count == 35
        assert result.summary.offline_count == 13
        assert _counts(result.record) == {"NAVER_MAZE_25": 29, "GENERAL_TICKET": 6}
        assert result.settlement.online_count == 35
        assert result.record.days[0].online == 15

    def test_original_untouched(self, january_record):
        apply_daily_correction(
            january_record, date(2025, 1, 1), 15, 5,
            {"NAVER_MAZE_25": 9, "GENERAL_TICKET": 6}, {"INDIVIDUAL": 5},
        )
        assert january_record.summary.online_count == 30
        assert january_record.days[0].online == 10

    def test_exact_key_shift(self, january_record):
        """채널 간 이동도 정확히 반영"""
        result = apply_daily_correction(
            january_record, "2025-01-02", 20, 0, {"GENERAL_TICKET": 20}, {},
        )
        assert _counts(result.record) == {"NAVER_MAZE_25": 6, "GENERAL_TICKET": 24}
        assert result.summary.online_count == 30

    def test_round_trip_with_new_key(self, january_record):
        original = compute_monthly_settlement(january_record)
        shifted = apply_daily_correction(
            january_record, "2025-01-03", 0, 8, {}, {"TAXI": 3, "SCHOOL_GROUP": 5},
        ).record
        assert shifted.categories["SCHOOL_GROUP"].count == 5
        restored = apply_daily_correction(
            shifted, "2025-01-03", 0, 8, {}, {"TAXI": 3, "RESIDENT": 5},
        ).record
        assert restored.summary == january_record.summary
        assert restored.categories["SCHOOL_GROUP"].count == 0
        assert restored.categories["RESIDENT"].count == 5
        assert restored.settlement.amounts == original.amounts

    def test_new_channel_fee(self, january_record):
        """새 채널은 마스터 수수료율, 마스터에도 없으면 15%"""
        result = apply_daily_correction(
            january_record, "2025-01-02", 25, 0,
            {"NAVER_MAZE_25": 20, "MAZE_TICKET": 3, "BRAND_NEW": 2}, {},
        )
        assert result.record.channels["MAZE_TICKET"].fee_rate == 12
        assert result.record.channels["BRAND_NEW"].fee_rate == 15.0
        assert result.record.channels["BRAND_NEW"].name == "BRAND_NEW"

    def test_missing_record(self):
        with pytest.raises(NotFoundError):
            apply_daily_correction(None, "2025-01-01", 1, 0, {"NAVER_MAZE_25": 1}, {})

    def test_missing_day(self, january_record):
        with pytest.raises(NotFoundError):
            apply_daily_correction(january_record, "2025-01-20", 1, 0, {"NAVER_MAZE_25": 1}, {})

    @pytest.mark.parametrize("online,offline,online_bd,offline_bd", [
        (-1, 5, {}, {"INDIVIDUAL": 5}),
        (10, 5, {"NAVER_MAZE_25": 9}, {"INDIVIDUAL": 5}),
        (10, 5, {}, {"INDIVIDUAL": 5}),
        (10, 5, {"NAVER_MAZE_25": 11, "GENERAL_TICKET": -1}, {"INDIVIDUAL": 5}),
    ])
    def test_invalid_input(self, january_record, online, offline, online_bd, offline_bd):
        with pytest.raises(InvalidInputError):
            apply_daily_correction(january_record, "2025-01-01", online, offline, online_bd, offline_bd)
        assert january_record.summary.online_count == 30
        assert _counts(january_record) == {"NAVER_MAZE_25": 26, "GENERAL_TICKET": 4}

    def test_bad_date_format(self, january_record):
        with pytest.raises(InvalidInputError):
            apply_daily_correction(january_record, "2025/01/01", 10, 5, {"NAVER_MAZE_25": 10}, {"INDIVIDUAL": 5})

    def test_negative_map_count(self, january_record):
        """맵이 일별 기록과 어긋나 있으면 음수가 되기 전에 중단"""
        january_record.channels["GENERAL_TICKET"].count = 1
        with pytest.raises(InvalidInputError):
            apply_daily_correction(
                january_record, "2025-01-01", 10, 5, {"NAVER_MAZE_25": 10}, {"INDIVIDUAL": 5},
            )
        assert january_record.channels["GENERAL_TICKET"].count == 1
        assert january_record.channels["NAVER_MAZE_25"].count == 26


class TestIngestDailyRecords:

    def test_append_new_day(self, january_record):
        new_day = DailyRecord(date(2025, 1, 4), online=5, online_breakdown={"MAZE_TICKET": 5})
        record = ingest_daily_records(january_record, [new_day])
        assert [d.date.day for d in record.days] == [1, 2, 3, 4]
        assert record.summary.online_count == 35
        assert record.channels["MAZE_TICKET"].count == 5
        assert record.channels["MAZE_TICKET"].fee_rate == 12
        assert record.settlement.online_count == 35
        assert january_record.summary.online_count == 30

    def test_insert_keeps_order(self, january_record):
        record = ingest_daily_records(
            rebuild_from_days(january_record),
            [DailyRecord(date(2025, 1, 31), offline=1, offline_breakdown={"OTHER": 1})],
        )
        record = ingest_daily_records(
            record, [DailyRecord(date(2025, 1, 15), offline=2, offline_breakdown={"OTHER": 2})],
        )
        assert [d.date.day for d in record.days] == [1, 2, 3, 15, 31]
        assert record.categories["OTHER"].count == 3

    def test_merge_existing_day(self, january_record):
        replacement = DailyRecord(date(2025, 1, 2), online=12, online_breakdown={"NAVER_MAZE_25": 12})
        record = ingest_daily_records(january_record, [replacement])
        assert record.summary.online_count == 22
        assert record.channels["NAVER_MAZE_25"].count == 18
        assert len(record.days) == 3
        assert check_consistency(record)["valid"]

    def test_no_merge_rejects_existing(self, january_record):
        replacement = DailyRecord(date(2025, 1, 2), online=12, online_breakdown={"NAVER_MAZE_25": 12})
        with pytest.raises(InvalidInputError):
            ingest_daily_records(january_record, [replacement], merge=False)

    def test_other_month(self, january_record):
        with pytest.raises(InvalidInputError):
            ingest_daily_records(january_record, make_days(2025, 2))

    def test_strict_unknown(self, january_record):
        day = DailyRecord(date(2025, 1, 9), offline=1, offline_breakdown={"VIP": 1})
        with pytest.raises(InvalidInputError):
            ingest_daily_records(january_record, [day], strict=True)
        record = ingest_daily_records(january_record, [day])
        assert record.categories["VIP"].name == "VIP"


class TestConsistency:

    def test_valid(self, january_record):
        report = check_consistency(january_record, DEFAULT_MASTER)
        assert report == {"valid": True, "errors": [], "warnings": []}

    def test_summary_mismatch(self, january_record):
        january_record.summary.offline_count = 99
        report = check_consistency(january_record)
        assert not report["valid"]
        assert any("현장 요약" in e for e in report["errors"])

    def test_channel_mismatch(self, january_record):
        january_record.channels["NAVER_MAZE_25"].count += 1
        report = check_consistency(january_record)
        assert not report["valid"]
        assert any("NAVER_MAZE_25" in e for e in report["errors"])

    def test_unknown_code_warning(self):
        day = DailyRecord(date(2025, 1, 1), online=1, online_breakdown={"MYSTERY": 1})
        record = build_monthly_record(2025, 1, [day])
        report = check_consistency(record, DEFAULT_MASTER)
        assert report["valid"]
        assert report["warnings"] == ["마스터에 없는 채널: MYSTERY"]


class TestRebuild:

    def test_repairs_tampered_record(self, january_record):
        january_record.channels["NAVER_MAZE_25"].count = 0
        january_record.summary.online_count = 1
        rebuilt = rebuild_from_days(january_record)
        assert check_consistency(rebuilt)["valid"]
        assert rebuilt.summary.online_count == 30
        assert rebuilt.channels["NAVER_MAZE_25"].count == 26

    def test_keeps_fee_snapshot(self, january_record):
        january_record.channels["NAVER_MAZE_25"].fee_rate = 7.5
        rebuilt = rebuild_from_days(january_record)
        assert rebuilt.channels["NAVER_MAZE_25"].fee_rate == 7.5
