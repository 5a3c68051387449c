"""
월별 아카이브 저장소 테스트
==========================
로컬 JSON 저장소와 Supabase 저장소 (테이블 API를 흉내 낸 가짜 클라이언트)
"""
import json
from types import SimpleNamespace

import pytest

from maze_settlement.core.fee_policy import MonthlyFeeSettings
from maze_settlement.storage.archive_store import (
    LocalArchiveStore,
    SupabaseArchiveStore,
    period_key,
)
from maze_settlement.storage.settlement_checks import MonthlySettlementChecks


class FakeQuery:
    """supabase 테이블 쿼리 체인 (select / eq / order / upsert / execute)"""

    def __init__(self, rows):
        self.rows = rows
        self.filters = []
        self.columns = None
        self.payload = None

    def select(self, columns):
        self.columns = [c.strip() for c in columns.split(",")]
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column):
        self.order_by = column
        return self

    def upsert(self, payload):
        self.payload = payload
        return self

    def execute(self):
        if self.payload is not None:
            self.rows[self.payload["period"]] = self.payload
            return SimpleNamespace(data=[self.payload])
        matched = [
            row for row in self.rows.values()
            if all(row.get(column) == value for column, value in self.filters)
        ]
        matched.sort(key=lambda row: row["period"])
        return SimpleNamespace(data=[{c: row[c] for c in self.columns} for row in matched])


class FakeSupabase:

    def __init__(self):
        self.tables = {}

    def table(self, name):
        return FakeQuery(self.tables.setdefault(name, {}))


@pytest.fixture(params=["local", "supabase"])
def store(request, tmp_path):
    if request.param == "local":
        return LocalArchiveStore(tmp_path / "archive")
    return SupabaseArchiveStore(FakeSupabase(), table="monthly_records")


class TestMonthlyRecords:

    def test_missing_month(self, store):
        assert store.get_monthly_record(2025, 1) is None
        assert store.list_available_months() == []

    def test_save_and_load(self, store, january_record):
        saved_at = store.save_monthly_record(january_record)
        assert saved_at

        loaded = store.get_monthly_record(2025, 1)
        assert loaded.summary == january_record.summary
        assert loaded.days == january_record.days
        assert loaded.channels == january_record.channels
        assert loaded.settlement.amounts == january_record.settlement.amounts

    def test_settlement_recomputed_on_load(self, store, january_record):
        """저장된 정산값이 아니라 채널 맵 기준으로 다시 계산"""
        store.save_monthly_record(january_record)
        document = store._read("2025-01")
        document["record"]["settlement"]["flows"][0]["amount"] = 1
        store._write("2025-01", document)

        loaded = store.get_monthly_record(2025, 1)
        assert loaded.settlement.amounts["SKP_TO_MAZE_REVENUE"] == (
            january_record.settlement.amounts["SKP_TO_MAZE_REVENUE"]
        )

    def test_list_months(self, store, january_record, february_record):
        store.save_monthly_record(february_record)
        store.save_monthly_record(january_record)
        store.save_settlement_checks(MonthlySettlementChecks(2024, 12))
        assert store.list_available_months() == [(2025, 1), (2025, 2)]
        assert [r.month for r in store.list_records()] == [1, 2]
        assert [r.month for r in store.list_records([(2025, 2), (2023, 1)])] == [2]


class TestDocumentKeysPreserved:

    def test_record_save_keeps_checks_and_fees(self, store, january_record):
        checks = MonthlySettlementChecks(2025, 1).toggle("CULTURE_TO_SKP", True, 1000, "김정산")
        store.save_settlement_checks(checks)
        fees = MonthlyFeeSettings.default(2025, 1).with_channel_fee("NAVER_MAZE_25", 8)
        store.save_fee_settings(fees)

        store.save_monthly_record(january_record)

        assert store.get_settlement_checks(2025, 1).is_checked("CULTURE_TO_SKP")
        assert store.get_fee_settings(2025, 1).base_fee_rate("NAVER_MAZE_25") == 8

    def test_defaults_when_missing(self, store):
        assert store.get_settlement_checks(2025, 5).checks == {}
        assert store.get_fee_settings(2025, 5).base_fee_rate("MAZE_TICKET") == 12


class TestPeriodLock:

    def test_same_period_same_lock(self, store):
        with store.period_lock(2025, 1):
            assert store._locks[period_key(2025, 1)].locked()
        assert not store._locks[period_key(2025, 1)].locked()


class TestLocalStore:

    def test_file_layout(self, tmp_path, january_record):
        store = LocalArchiveStore(tmp_path)
        store.save_monthly_record(january_record)
        archive_file = tmp_path / "2025-01.json"
        assert archive_file.exists()
        assert list(tmp_path.glob("*.tmp")) == []

        with open(archive_file, encoding="utf-8") as f:
            document = json.load(f)
        assert document["period"] == "2025-01"
        assert document["record"]["summary"]["total_count"] == 43


class TestSupabaseStore:

    def test_row_shape(self, january_record):
        client = FakeSupabase()
        store = SupabaseArchiveStore(client, table="records")
        store.save_monthly_record(january_record)

        row = client.tables["records"]["2025-01"]
        assert (row["year"], row["month"], row["has_record"]) == (2025, 1, True)
        assert row["data"]["record"]["period"] == "2025-01"

    def test_checks_only_row_is_not_a_month(self):
        client = FakeSupabase()
        store = SupabaseArchiveStore(client, table="records")
        store.save_settlement_checks(MonthlySettlementChecks(2025, 3))
        assert client.tables["records"]["2025-03"]["has_record"] is False
        assert store.list_available_months() == []
