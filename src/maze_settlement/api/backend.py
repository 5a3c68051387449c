"""
메이즈랜드 정산 시스템 - FastAPI 백엔드

흐름:
1. 일별 방문객 수 입력 (업로드 파싱 결과) → 월 기록 생성/추가
2. 특정 날짜 보정 → 요약 증분 갱신 + 정산 재계산
3. 월 정산 / 연간·전체 누적 정산 조회 (조회자 권한별 마스킹)
4. 정산 항목 체크, 월별 수수료 설정, 엑셀 리포트

조회자 식별(role, company_code)은 인증 계층이 넘겨준 값을 그대로 사용합니다.
"""

from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from pydantic import BaseModel
import uvicorn

from .. import __version__, settings
from ..core.aggregator import (
    apply_daily_correction,
    build_monthly_record,
    check_consistency,
    ingest_daily_records,
    rebuild_from_days,
)
from ..core.config import SettlementConfig, load_settlement_config
from ..core.cumulative import MODE_YEARLY, available_years, rollup, select_months
from ..core.ledger import compute_settlement
from ..core.master_data import MasterData, load_companies, load_master_data
from ..core.visibility import (
    ALL_COMPANIES,
    can_view_all,
    filter_flows_for_viewer,
    filter_for_viewer,
    viewable_company_codes,
)
from ..exceptions import InvalidInputError, InvalidRateError, NotFoundError, SettlementError
from ..models.company import COMPANY_CODES, Company
from ..models.record import DailyRecord, parse_date
from ..models.settlement import SettlementResult
from ..reports.excel_report import generate_monthly_report
from ..storage.archive_store import ArchiveStore, create_archive_store
from ..storage.settlement_checks import company_completion_rates, completion_rate, stale_checks

# FastAPI 앱 생성
app = FastAPI(
    title="Maze Settlement API",
    description="메이즈랜드 방문객 정산 API",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ADMIN_ROLES = ("SUPER_ADMIN", "SKP_ADMIN")

# 설정 / 마스터 / 저장소 (시작 시 또는 첫 요청 시 로드)
config: Optional[SettlementConfig] = None
master: Optional[MasterData] = None
companies_data: Dict[str, Company] = {}
store: Optional[ArchiveStore] = None


# ============================================================================
# Pydantic 모델
# ============================================================================

class DailyRecordRequest(BaseModel):
    """일별 방문객 기록"""
    date: str
    online: int = 0
    offline: int = 0
    online_breakdown: Dict[str, int] = {}
    offline_breakdown: Dict[str, int] = {}

    def to_record(self) -> DailyRecord:
        return DailyRecord(
            date=parse_date(self.date),
            online=self.online,
            offline=self.offline,
            online_breakdown=dict(self.online_breakdown),
            offline_breakdown=dict(self.offline_breakdown),
        )


class IngestRequest(BaseModel):
    """월 기록 생성/추가 요청"""
    role: str
    days: List[DailyRecordRequest]
    merge: bool = True
    strict: bool = True
    file_name: Optional[str] = ""
    use_fee_settings: bool = False


class CorrectionRequest(BaseModel):
    """하루 보정 요청"""
    role: str
    date: str
    online: int
    offline: int
    online_breakdown: Dict[str, int] = {}
    offline_breakdown: Dict[str, int] = {}


class RebuildRequest(BaseModel):
    role: str


class ComputeRequest(BaseModel):
    """저장 없이 정산 계산"""
    counts: Dict[str, int] = {}
    offline_count: int = 0
    role: Optional[str] = None
    company_code: Optional[str] = None


class CheckRequest(BaseModel):
    """정산 항목 체크/해제"""
    year: int
    month: int
    flow_id: str
    checked: bool
    user_name: str


class ChannelFeeRequest(BaseModel):
    role: str
    channel_code: str
    fee_rate: float


class FeeOverrideRequest(BaseModel):
    role: str
    channel_code: str
    start_date: str
    end_date: str
    fee_rate: float
    reason: Optional[str] = ""


# ============================================================================
# 초기화 / 헬퍼
# ============================================================================

def _init_state() -> None:
    global config, master, companies_data, store
    if config is None:
        config = load_settlement_config()
    if master is None:
        master = load_master_data()
    if not companies_data:
        companies_data = load_companies()
    if store is None:
        store = create_archive_store(config)


def _store() -> ArchiveStore:
    _init_state()
    return store


def _to_http(e: SettlementError) -> HTTPException:
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, (InvalidInputError, InvalidRateError)):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


def _require_admin(role: Optional[str]) -> None:
    if role not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="권한이 없습니다")


def _check_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise HTTPException(status_code=400, detail=f"잘못된 월: {month}")


def _settlement_view(settlement: SettlementResult, viewable: FrozenSet[str]) -> Dict[str, Any]:
    """조회자 권한에 맞춰 정산 결과 직렬화"""
    data = settlement.to_dict()
    flows = filter_flows_for_viewer(settlement.flows, viewable)
    data["companies"] = [c.to_dict() for c in filter_for_viewer(settlement.companies, viewable)]
    data["flows"] = [asdict(f) for f in flows]
    data["amounts"] = {f.id: f.amount for f in flows}
    if not can_view_all(viewable):
        # SKP 순이익(대행 수수료 기준)과 채널별 매출은 전체 조회자만
        data["agency_base"] = None
        data["channel_breakdown"] = []
        data["net_transfers"] = [
            t for t in data["net_transfers"]
            if t["from_code"] in viewable or t["to_code"] in viewable
        ]
    return data


@app.on_event("startup")
async def startup_event():
    """시작 시 초기화"""
    _init_state()
    print("✅ Maze Settlement API 시작")
    print(f"   - 기업 정보: {len(companies_data)}개 로드됨")
    print(f"   - 채널: {len(master.channels)}개, 카테고리: {len(master.categories)}개")
    print(f"   - 저장소: {type(store).__name__}")


@app.get("/health")
async def health_check():
    """헬스 체크"""
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


# ============================================================================
# 마스터 데이터
# ============================================================================

@app.get("/api/master")
async def get_master() -> Dict[str, Any]:
    """채널 / 카테고리 / 기업 목록"""
    _init_state()
    data = master.to_dict()
    data["companies"] = [
        {"code": c.code, "name": c.name, "type": c.type}
        for code, c in companies_data.items() if code in ALL_COMPANIES
    ]
    return data


@app.get("/api/months")
async def list_months() -> Dict[str, Any]:
    """데이터가 있는 월 / 연도 목록"""
    months = _store().list_available_months()
    return {
        "months": [{"year": y, "month": m} for y, m in months],
        "years": available_years(months),
        "count": len(months),
    }


# ============================================================================
# 정산 계산 / 조회
# ============================================================================

@app.post("/api/settlements/compute")
async def compute(request: ComputeRequest) -> Dict[str, Any]:
    """채널별 인원으로 정산 계산 (저장하지 않음)"""
    _init_state()
    try:
        settlement = compute_settlement(
            request.counts, request.offline_count, master, config, companies_data
        )
    except SettlementError as e:
        raise _to_http(e)
    viewable = viewable_company_codes(request.role, request.company_code)
    return _settlement_view(settlement, viewable)


@app.get("/api/settlements/cumulative")
async def get_cumulative(
    mode: str = MODE_YEARLY,
    year: Optional[int] = None,
    role: Optional[str] = None,
    company_code: Optional[str] = None,
) -> Dict[str, Any]:
    """연간 / 전체 누적 정산"""
    archive = _store()
    months = archive.list_available_months()
    if year is None:
        year = datetime.now().year
    try:
        targets = select_months(months, mode, year)
        records = archive.list_records(targets)
        cumulative = rollup(
            records, config, companies_data, mode=mode, year=year, years=available_years(months)
        )
    except SettlementError as e:
        raise _to_http(e)

    viewable = viewable_company_codes(role, company_code)
    data = cumulative.to_dict()
    data["companies"] = [c.to_dict() for c in filter_for_viewer(cumulative.companies, viewable)]
    if not can_view_all(viewable):
        visible_ids = {
            rel.id for rel in config.relationships + [config.agency_relationship]
            if rel.source in viewable or rel.destination in viewable
        }
        data["amounts"] = {k: v for k, v in data["amounts"].items() if k in visible_ids}
        for line in data["monthly"]:
            line["amounts"] = {k: v for k, v in line["amounts"].items() if k in visible_ids}
    return data


@app.get("/api/settlements/{year}/{month}")
async def get_monthly_settlement(
    year: int, month: int, role: Optional[str] = None, company_code: Optional[str] = None
) -> Dict[str, Any]:
    """월 정산 조회 (데이터가 없으면 has_data=False)"""
    _check_month(month)
    archive = _store()
    months = archive.list_available_months()
    record = archive.get_monthly_record(year, month)
    if record is None:
        return {
            "year": year,
            "month": month,
            "has_data": False,
            "available_months": [{"year": y, "month": m} for y, m in months],
        }

    viewable = viewable_company_codes(role, company_code)
    checks = archive.get_settlement_checks(year, month)
    flows = filter_flows_for_viewer(record.settlement.flows, viewable)
    codes = [c for c in COMPANY_CODES if c in viewable]
    visible_ids = {f.id for f in flows}

    return {
        "year": year,
        "month": month,
        "has_data": True,
        "available_months": [{"year": y, "month": m} for y, m in months],
        "summary": record.summary.to_dict(),
        "settlement": _settlement_view(record.settlement, viewable),
        "checks": {k: v for k, v in checks.to_dict()["checks"].items() if k in visible_ids},
        "completion_rate": completion_rate(checks, flows),
        "company_completion_rates": company_completion_rates(checks, flows, codes),
        "stale_checks": stale_checks(checks, flows),
    }


# ============================================================================
# 월 기록 (입력 / 보정)
# ============================================================================

@app.get("/api/records/{year}/{month}")
async def get_record(year: int, month: int, role: Optional[str] = None) -> Dict[str, Any]:
    """월 기록 원본 (일별 기록 포함, 관리자 전용)"""
    _require_admin(role)
    record = _store().get_monthly_record(year, month)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{year}-{month:02d} 기록을 찾을 수 없습니다")
    return record.to_dict()


# period_lock은 스레드 락이므로 아래 쓰기 핸들러는 동기 함수로 둠

@app.post("/api/records/{year}/{month}/ingest")
def ingest(year: int, month: int, request: IngestRequest) -> Dict[str, Any]:
    """일별 기록 입력 (월 기록이 없으면 생성)"""
    _require_admin(request.role)
    _check_month(month)
    archive = _store()
    try:
        days = [d.to_record() for d in request.days]
        with archive.period_lock(year, month):
            existing = archive.get_monthly_record(year, month)
            if existing is None:
                fee_settings = (
                    archive.get_fee_settings(year, month, master) if request.use_fee_settings else None
                )
                record = build_monthly_record(
                    year, month, days, master, config,
                    fee_settings=fee_settings,
                    file_name=request.file_name or "",
                    strict=request.strict,
                )
                created = True
            else:
                record = ingest_daily_records(
                    existing, days, merge=request.merge, master=master, config=config,
                    strict=request.strict,
                )
                created = False
            saved_at = archive.save_monthly_record(record)
    except SettlementError as e:
        raise _to_http(e)

    return {
        "status": "created" if created else "updated",
        "period": record.period,
        "saved_at": saved_at,
        "day_count": len(record.days),
        "summary": record.summary.to_dict(),
        "consistency": check_consistency(record, master),
    }


@app.post("/api/records/{year}/{month}/correction")
def correct_day(year: int, month: int, request: CorrectionRequest) -> Dict[str, Any]:
    """특정 날짜 보정"""
    _require_admin(request.role)
    _check_month(month)
    archive = _store()
    try:
        target = parse_date(request.date)
        if (target.year, target.month) != (year, month):
            raise InvalidInputError(f"{target}는 {year}-{month:02d}에 속하지 않습니다")
        unknown = master.unknown_channels(request.online_breakdown) + \
            master.unknown_categories(request.offline_breakdown)
        if unknown:
            raise InvalidInputError(f"마스터에 없는 코드: {unknown}")

        with archive.period_lock(year, month):
            result = apply_daily_correction(
                archive.get_monthly_record(year, month),
                target,
                request.online,
                request.offline,
                request.online_breakdown,
                request.offline_breakdown,
                master,
                config,
            )
            archive.save_monthly_record(result.record)
    except SettlementError as e:
        raise _to_http(e)

    return {
        "status": "corrected",
        "date": target.isoformat(),
        "summary": result.summary.to_dict(),
        "settlement": _settlement_view(result.settlement, ALL_COMPANIES),
    }


@app.get("/api/records/{year}/{month}/consistency")
async def get_consistency(year: int, month: int, role: Optional[str] = None) -> Dict[str, Any]:
    """월 기록 전수 점검"""
    _require_admin(role)
    record = _store().get_monthly_record(year, month)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{year}-{month:02d} 기록을 찾을 수 없습니다")
    return check_consistency(record, master)


@app.post("/api/records/{year}/{month}/rebuild")
def rebuild(year: int, month: int, request: RebuildRequest) -> Dict[str, Any]:
    """일별 기록으로 요약/맵 재구성"""
    _require_admin(request.role)
    archive = _store()
    try:
        with archive.period_lock(year, month):
            record = archive.get_monthly_record(year, month)
            if record is None:
                raise NotFoundError(f"{year}-{month:02d} 기록을 찾을 수 없습니다")
            rebuilt = rebuild_from_days(record, master, config)
            archive.save_monthly_record(rebuilt)
    except SettlementError as e:
        raise _to_http(e)
    return {"status": "rebuilt", "summary": rebuilt.summary.to_dict()}


# ============================================================================
# 정산 항목 체크
# ============================================================================

@app.get("/api/checks/{year}/{month}")
async def get_checks(year: int, month: int) -> Dict[str, Any]:
    """정산 항목 체크 상태"""
    checks = _store().get_settlement_checks(year, month)
    return checks.to_dict()


@app.post("/api/checks")
def toggle_check(request: CheckRequest) -> Dict[str, Any]:
    """정산 항목 체크/해제 (현재 계산 금액을 함께 기록)"""
    archive = _store()
    try:
        with archive.period_lock(request.year, request.month):
            record = archive.get_monthly_record(request.year, request.month)
            if record is None:
                raise NotFoundError(f"{request.year}-{request.month:02d} 기록을 찾을 수 없습니다")
            amounts = record.settlement.amounts
            if request.flow_id not in amounts:
                raise InvalidInputError(f"알 수 없는 정산 항목: {request.flow_id}")
            checks = archive.get_settlement_checks(request.year, request.month)
            checks.toggle(request.flow_id, request.checked, amounts[request.flow_id], request.user_name)
            archive.save_settlement_checks(checks)
    except SettlementError as e:
        raise _to_http(e)

    return {
        "status": "checked" if request.checked else "unchecked",
        "checks": checks.to_dict()["checks"],
        "updated_at": checks.updated_at,
        "completion_rate": completion_rate(checks, record.settlement.flows),
    }


# ============================================================================
# 수수료 설정
# ============================================================================

@app.get("/api/fees/{year}/{month}")
async def get_fee_settings(year: int, month: int) -> Dict[str, Any]:
    """월 수수료 설정 (채널별 월 평균 수수료율 포함)"""
    _check_month(month)
    _init_state()
    fee_settings = _store().get_fee_settings(year, month, master)
    data = fee_settings.to_dict()
    data["average_fee_rates"] = {
        c.channel_code: fee_settings.average_fee_rate(c.channel_code) for c in fee_settings.channels
    }
    return data


@app.post("/api/fees/{year}/{month}/channel")
def update_channel_fee(year: int, month: int, request: ChannelFeeRequest) -> Dict[str, Any]:
    _require_admin(request.role)
    _check_month(month)
    archive = _store()
    try:
        with archive.period_lock(year, month):
            fee_settings = archive.get_fee_settings(year, month, master)
            fee_settings = fee_settings.with_channel_fee(request.channel_code, request.fee_rate)
            archive.save_fee_settings(fee_settings)
    except SettlementError as e:
        raise _to_http(e)
    return fee_settings.to_dict()


@app.post("/api/fees/{year}/{month}/overrides")
def add_fee_override(year: int, month: int, request: FeeOverrideRequest) -> Dict[str, Any]:
    _require_admin(request.role)
    _check_month(month)
    archive = _store()
    try:
        with archive.period_lock(year, month):
            fee_settings = archive.get_fee_settings(year, month, master).with_override(
                request.channel_code,
                request.start_date,
                request.end_date,
                request.fee_rate,
                request.reason or "",
            )
            archive.save_fee_settings(fee_settings)
    except SettlementError as e:
        raise _to_http(e)
    return fee_settings.to_dict()


@app.delete("/api/fees/{year}/{month}/overrides/{override_id}")
def remove_fee_override(year: int, month: int, override_id: str, role: Optional[str] = None) -> Dict[str, Any]:
    _require_admin(role)
    archive = _store()
    try:
        with archive.period_lock(year, month):
            fee_settings = archive.get_fee_settings(year, month, master).without_override(override_id)
            archive.save_fee_settings(fee_settings)
    except SettlementError as e:
        raise _to_http(e)
    return fee_settings.to_dict()


# ============================================================================
# 리포트
# ============================================================================

@app.get("/api/reports/{year}/{month}/excel")
async def download_excel_report(year: int, month: int, role: Optional[str] = None):
    """월 정산 엑셀 리포트 다운로드 (관리자 전용)"""
    _require_admin(role)
    record = _store().get_monthly_record(year, month)
    if record is None:
        raise HTTPException(status_code=404, detail=f"{year}-{month:02d} 기록을 찾을 수 없습니다")
    report_path = generate_monthly_report(record, str(settings.OUTPUT_DIR))
    return FileResponse(
        report_path,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        filename=Path(report_path).name,
    )


# ============================================================================
# 루트
# ============================================================================

@app.get("/")
async def root():
    """API 정보"""
    return {
        "message": f"Maze Settlement API v{__version__}",
        "docs": "/docs",
        "api_endpoints": {
            "master": "GET /api/master",
            "months": "GET /api/months",
            "compute": "POST /api/settlements/compute",
            "monthly": "GET /api/settlements/{year}/{month}",
            "cumulative": "GET /api/settlements/cumulative?mode=yearly|all&year=",
            "record": "GET /api/records/{year}/{month}",
            "ingest": "POST /api/records/{year}/{month}/ingest",
            "correction": "POST /api/records/{year}/{month}/correction",
            "consistency": "GET /api/records/{year}/{month}/consistency",
            "rebuild": "POST /api/records/{year}/{month}/rebuild",
            "checks": "GET /api/checks/{year}/{month}, POST /api/checks",
            "fees": "GET /api/fees/{year}/{month}, POST .../channel, POST/DELETE .../overrides",
            "excel": "GET /api/reports/{year}/{month}/excel",
        }
    }


if __name__ == "__main__":
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        log_level="info"
    )
