"""
월별 아카이브 저장소
====================
(년, 월) 단위로 월 기록, 정산 항목 체크, 수수료 설정을 한 문서에 저장합니다.

- LocalArchiveStore    : data/archive/YYYY-MM.json
- SupabaseArchiveStore : Supabase 테이블 (period 기준 upsert)

월 기록을 다시 저장해도 기존 정산 체크와 수수료 설정은 보존됩니다.
정산 결과는 저장값을 쓰지 않고 불러올 때 다시 계산합니다.
"""

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Tuple

from supabase import Client, create_client

from .. import settings
from ..core.aggregator import with_settlement
from ..core.config import DEFAULT_CONFIG, SettlementConfig
from ..core.fee_policy import MonthlyFeeSettings
from ..core.master_data import DEFAULT_MASTER, MasterData
from ..models.record import MonthlyRecord
from .settlement_checks import MonthlySettlementChecks

logger = logging.getLogger(__name__)


def period_key(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


class ArchiveStore:
    """저장소 공통 동작 (문서 읽기/쓰기는 하위 클래스 구현)"""

    def __init__(self, config: SettlementConfig = DEFAULT_CONFIG):
        self.config = config
        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    # ────────────────────────────────────────────
    # 하위 클래스 구현
    # ────────────────────────────────────────────

    def _read(self, period: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def _write(self, period: str, document: Dict[str, Any]) -> None:
        raise NotImplementedError

    def list_available_months(self) -> List[Tuple[int, int]]:
        raise NotImplementedError

    # ────────────────────────────────────────────
    # 기간 잠금
    # ────────────────────────────────────────────

    @contextmanager
    def period_lock(self, year: int, month: int) -> Iterator[None]:
        """같은 (년, 월)의 읽기-수정-저장을 직렬화 (프로세스 내)"""
        key = period_key(year, month)
        with self._locks_guard:
            lock = self._locks.setdefault(key, threading.Lock())
        with lock:
            yield

    # ────────────────────────────────────────────
    # 월 기록
    # ────────────────────────────────────────────

    def _document(self, year: int, month: int) -> Dict[str, Any]:
        period = period_key(year, month)
        return self._read(period) or {"period": period, "year": year, "month": month}

    def get_monthly_record(self, year: int, month: int) -> Optional[MonthlyRecord]:
        document = self._read(period_key(year, month))
        if not document or not document.get("record"):
            return None
        return with_settlement(MonthlyRecord.from_dict(document["record"]), self.config)

    def save_monthly_record(self, record: MonthlyRecord) -> str:
        """월 기록 저장 (기존 정산 체크/수수료 설정 보존), 저장 시각 반환"""
        document = self._document(record.year, record.month)
        document["record"] = record.to_dict()
        document["saved_at"] = datetime.now().isoformat()
        self._write(record.period, document)
        logger.info("%s 월 기록 저장", record.period)
        return document["saved_at"]

    def list_records(self, months: Optional[List[Tuple[int, int]]] = None) -> List[MonthlyRecord]:
        records = []
        for year, month in months if months is not None else self.list_available_months():
            record = self.get_monthly_record(year, month)
            if record is not None:
                records.append(record)
        return records

    # ────────────────────────────────────────────
    # 정산 항목 체크
    # ────────────────────────────────────────────

    def get_settlement_checks(self, year: int, month: int) -> MonthlySettlementChecks:
        document = self._read(period_key(year, month)) or {}
        return MonthlySettlementChecks.from_dict(year, month, document.get("settlement_checks"))

    def save_settlement_checks(self, checks: MonthlySettlementChecks) -> None:
        document = self._document(checks.year, checks.month)
        document["settlement_checks"] = checks.to_dict()
        self._write(checks.period, document)

    # ────────────────────────────────────────────
    # 수수료 설정
    # ────────────────────────────────────────────

    def get_fee_settings(self, year: int, month: int, master: MasterData = DEFAULT_MASTER) -> MonthlyFeeSettings:
        """저장된 월 수수료 설정 (없으면 마스터 기본값)"""
        document = self._read(period_key(year, month)) or {}
        if document.get("fee_settings"):
            return MonthlyFeeSettings.from_dict(document["fee_settings"], master)
        return MonthlyFeeSettings.default(year, month, master)

    def save_fee_settings(self, fee_settings: MonthlyFeeSettings) -> None:
        document = self._document(fee_settings.year, fee_settings.month)
        document["fee_settings"] = fee_settings.to_dict()
        self._write(period_key(fee_settings.year, fee_settings.month), document)


class LocalArchiveStore(ArchiveStore):
    """로컬 JSON 파일 저장소"""

    def __init__(self, archive_dir: Optional[Path] = None, config: SettlementConfig = DEFAULT_CONFIG):
        super().__init__(config)
        self.archive_dir = Path(archive_dir) if archive_dir else settings.ARCHIVE_DIR
        self.archive_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, period: str) -> Path:
        return self.archive_dir / f"{period}.json"

    def _read(self, period: str) -> Optional[Dict[str, Any]]:
        archive_file = self._path(period)
        if not archive_file.exists():
            return None
        with open(archive_file, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write(self, period: str, document: Dict[str, Any]) -> None:
        # 임시 파일에 쓴 뒤 교체 (쓰기 도중 실패해도 기존 파일 유지)
        fd, tmp_path = tempfile.mkstemp(dir=self.archive_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path(period))
        except BaseException:
            os.unlink(tmp_path)
            raise

    def list_available_months(self) -> List[Tuple[int, int]]:
        months = []
        for archive_file in sorted(self.archive_dir.glob("*.json")):
            document = self._read(archive_file.stem)
            if document and document.get("record"):
                months.append((int(document["record"]["year"]), int(document["record"]["month"])))
        return sorted(months)


class SupabaseArchiveStore(ArchiveStore):
    """Supabase 테이블 저장소 (period, year, month, saved_at, data)"""

    def __init__(self, client: Client, table: Optional[str] = None, config: SettlementConfig = DEFAULT_CONFIG):
        super().__init__(config)
        self.client = client
        self.table = table or settings.SUPABASE_TABLE

    def _read(self, period: str) -> Optional[Dict[str, Any]]:
        response = self.client.table(self.table).select("data").eq("period", period).execute()
        if response.data:
            return response.data[0]["data"]
        return None

    def _write(self, period: str, document: Dict[str, Any]) -> None:
        self.client.table(self.table).upsert({
            "period": period,
            "year": document["year"],
            "month": document["month"],
            "saved_at": datetime.now().isoformat(),
            "has_record": bool(document.get("record")),
            "data": document,
        }).execute()
        logger.info("Supabase 저장 완료: %s", period)

    def list_available_months(self) -> List[Tuple[int, int]]:
        response = (
            self.client.table(self.table)
            .select("year, month")
            .eq("has_record", True)
            .order("period")
            .execute()
        )
        return sorted((int(row["year"]), int(row["month"])) for row in response.data)


def create_archive_store(config: SettlementConfig = DEFAULT_CONFIG) -> ArchiveStore:
    """설정에 따라 저장소 선택 (Supabase 설정이 있으면 DB, 없거나 실패하면 로컬)"""
    if settings.SUPABASE_URL and settings.SUPABASE_KEY:
        try:
            client = create_client(settings.SUPABASE_URL, settings.SUPABASE_KEY)
            logger.info("Supabase 저장소 사용 (table=%s)", settings.SUPABASE_TABLE)
            return SupabaseArchiveStore(client, settings.SUPABASE_TABLE, config)
        except Exception as e:
            logger.error("Supabase 초기화 실패, 로컬 저장소 사용: %s", e)
    return LocalArchiveStore(settings.ARCHIVE_DIR, config)
