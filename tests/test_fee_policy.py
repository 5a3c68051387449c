"""
수수료 정책 테스트
"""
from datetime import date

import pytest

from maze_settlement.core.fee_policy import MonthlyFeeSettings
from maze_settlement.exceptions import InvalidInputError, InvalidRateError, NotFoundError


@pytest.fixture
def february():
    return MonthlyFeeSettings.default(2025, 2).with_override(
        "NAVER_MAZE_25", "2025-02-01", "2025-02-14", 5, reason="설 프로모션"
    )


class TestFeeRateLookup:

    def test_default_from_master(self):
        settings = MonthlyFeeSettings.default(2025, 1)
        assert settings.base_fee_rate("NAVER_MAZE_25") == 10
        assert settings.base_fee_rate("UNLISTED") == 15.0

    def test_override_wins_inside_period(self, february):
        assert february.fee_rate_for_date("NAVER_MAZE_25", "2025-02-14") == 5
        assert february.fee_rate_for_date("NAVER_MAZE_25", date(2025, 2, 15)) == 10
        assert february.fee_rate_for_date("GENERAL_TICKET", "2025-02-01") == 15

    def test_all_rates_for_date(self, february):
        rates = february.all_fee_rates_for_date("2025-02-03")
        assert rates["NAVER_MAZE_25"] == 5
        assert rates["MAZE_TICKET"] == 12


class TestAverageFeeRate:

    def test_half_month_override(self, february):
        assert february.average_fee_rate("NAVER_MAZE_25") == 7.5

    def test_single_day_override(self):
        settings = MonthlyFeeSettings.default(2025, 1).with_override(
            "NAVER_MAZE_25", "2025-01-01", "2025-01-01", 0
        )
        # (30 × 10 + 0) / 31
        assert settings.average_fee_rate("NAVER_MAZE_25") == 9.68

    def test_no_override_is_base_rate(self, february):
        assert february.average_fee_rate("GENERAL_TICKET") == 15


class TestChanges:

    def test_with_channel_fee_returns_new_settings(self, february):
        changed = february.with_channel_fee("GENERAL_TICKET", 8)
        assert changed.base_fee_rate("GENERAL_TICKET") == 8
        assert changed.channel_fee("GENERAL_TICKET").source == "manual"
        assert february.base_fee_rate("GENERAL_TICKET") == 15

    def test_with_channel_fee_adds_unlisted(self):
        changed = MonthlyFeeSettings.default(2025, 1).with_channel_fee("POPUP", 20)
        assert changed.channel_fee("POPUP").channel_name == "POPUP"
        assert changed.base_fee_rate("POPUP") == 20

    @pytest.mark.parametrize("rate", [-1, 100.5])
    def test_invalid_rate(self, february, rate):
        with pytest.raises(InvalidRateError):
            february.with_channel_fee("NAVER_MAZE_25", rate)
        with pytest.raises(InvalidRateError):
            february.with_override("NAVER_MAZE_25", "2025-02-01", "2025-02-02", rate)

    def test_reversed_period(self, february):
        with pytest.raises(InvalidInputError):
            february.with_override("NAVER_MAZE_25", "2025-02-10", "2025-02-01", 5)

    def test_override_id_and_removal(self, february):
        override = february.overrides[0]
        assert override.id.startswith("NAVER_MAZE_25-")
        removed = february.without_override(override.id)
        assert removed.overrides == []
        assert removed.fee_rate_for_date("NAVER_MAZE_25", "2025-02-01") == 10
        with pytest.raises(NotFoundError):
            removed.without_override(override.id)

    def test_override_ids_stay_unique_after_removal(self, february):
        """같은 채널/시작일 예외를 삭제 후 다시 추가해도 ID가 겹치지 않음"""
        first = february.overrides[0]
        second = february.with_override("NAVER_MAZE_25", "2025-02-01", "2025-02-07", 3)
        recycled = second.without_override(first.id).with_override(
            "NAVER_MAZE_25", "2025-02-01", "2025-02-03", 0
        )
        ids = [o.id for o in recycled.overrides]
        assert len(set(ids)) == 2

        remaining = recycled.without_override(ids[0])
        assert [o.id for o in remaining.overrides] == [ids[1]]
        assert remaining.fee_rate_for_date("NAVER_MAZE_25", "2025-02-02") == 0


class TestSerialization:

    def test_dict_round_trip(self, february):
        restored = MonthlyFeeSettings.from_dict(february.to_dict())
        assert restored == february
        assert february.to_dict()["overrides"][0]["start_date"] == "2025-02-01"

    def test_from_dict_rejects_bad_rate(self):
        data = {"year": 2025, "month": 1, "channels": [{"channel_code": "X", "fee_rate": 120}]}
        with pytest.raises(InvalidRateError):
            MonthlyFeeSettings.from_dict(data)
