"""
공통 테스트 데이터
"""
from datetime import date

import pytest

from maze_settlement.core.aggregator import build_monthly_record
from maze_settlement.models.record import DailyRecord


def make_days(year=2025, month=1):
    """3일치 기록: 온라인 30명 (네이버 26, 일반 4), 현장 13명"""
    return [
        DailyRecord(
            date=date(year, month, 1),
            online=10,
            offline=5,
            online_breakdown={"NAVER_MAZE_25": 6, "GENERAL_TICKET": 4},
            offline_breakdown={"INDIVIDUAL": 5},
        ),
        DailyRecord(
            date=date(year, month, 2),
            online=20,
            offline=0,
            online_breakdown={"NAVER_MAZE_25": 20},
        ),
        DailyRecord(
            date=date(year, month, 3),
            online=0,
            offline=8,
            offline_breakdown={"TAXI": 3, "RESIDENT": 5},
        ),
    ]


@pytest.fixture
def january_record():
    return build_monthly_record(2025, 1, make_days(2025, 1), file_name="2025-01.xlsx")


@pytest.fixture
def february_record():
    return build_monthly_record(2025, 2, make_days(2025, 2))
