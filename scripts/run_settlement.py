#!/usr/bin/env python3
"""
메이즈랜드 정산 CLI
===================

사용법:
    # 월 정산 조회 + 엑셀 리포트
    python3 run_settlement.py --year 2025 --month 1

    # 일별 기록 JSON 입력 후 월 정산 (기존 날짜는 보정으로 반영)
    python3 run_settlement.py --year 2025 --month 1 --import data/2025-01_daily.json

    # 연간 / 전체 누적 정산
    python3 run_settlement.py --cumulative yearly --year 2025
    python3 run_settlement.py --cumulative all

    # 월 기록 점검
    python3 run_settlement.py --year 2025 --month 1 --check

일별 기록 JSON 형식:
    [{"date": "2025-01-01", "online": 10, "offline": 5,
      "online_breakdown": {"NAVER_MAZE_25": 10}, "offline_breakdown": {"INDIVIDUAL": 5}}, ...]
"""

import argparse
import json
import sys
from pathlib import Path

# src 디렉토리를 모듈 검색 경로에 추가
BASE_PATH = Path(__file__).parent.parent
sys.path.insert(0, str(BASE_PATH / "src"))

from maze_settlement.core.aggregator import (
    build_monthly_record,
    check_consistency,
    ingest_daily_records,
)
from maze_settlement.core.config import load_settlement_config
from maze_settlement.core.cumulative import available_years, rollup, select_months
from maze_settlement.core.master_data import load_master_data
from maze_settlement.exceptions import SettlementError
from maze_settlement.models.record import DailyRecord
from maze_settlement.reports.excel_report import generate_cumulative_report, generate_monthly_report
from maze_settlement.settings import configure_logging
from maze_settlement.storage.archive_store import LocalArchiveStore, create_archive_store


def _print_companies(companies):
    print(f"\n{'회사':<12} {'매출':>14} {'수익':>14} {'비용':>14} {'이익':>14} {'이익률':>8}")
    print("-" * 80)
    for c in companies:
        print(
            f"{c.name:<12} {c.revenue:>14,} {c.income:>14,} {c.expense:>14,} "
            f"{c.profit:>14,} {c.profit_rate:>7.1f}%"
        )


def _print_flows(amounts, relationships):
    print(f"\n{'정산 항목':<28} {'발행처 → 수취처':<20} {'금액':>14}")
    print("-" * 66)
    for rel in relationships:
        print(f"{rel.id:<28} {rel.source + ' → ' + rel.destination:<20} {amounts.get(rel.id, 0):>14,}")


def main():
    parser = argparse.ArgumentParser(
        description="메이즈랜드 정산 CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument("--year", "-y", type=int, help="정산 연도")
    parser.add_argument("--month", "-m", type=int, help="정산 월")
    parser.add_argument(
        "--cumulative", "-c",
        choices=["yearly", "all"],
        help="누적 정산 (yearly: --year 연도, all: 전체)",
    )
    parser.add_argument("--import", dest="import_file", help="일별 기록 JSON 파일")
    parser.add_argument("--no-merge", action="store_true", help="이미 있는 날짜는 오류 처리")
    parser.add_argument("--check", action="store_true", help="월 기록 점검")
    parser.add_argument("--archive-dir", help="아카이브 디렉토리 (기본: 환경설정)")
    parser.add_argument("--output", "-o", default="output", help="리포트 출력 디렉토리 (기본: output)")
    parser.add_argument("--no-excel", action="store_true", help="엑셀 리포트 생성 안 함")
    parser.add_argument("--log-level", default=None, help="로그 레벨 (기본: LOG_LEVEL)")

    args = parser.parse_args()
    configure_logging(args.log_level)

    config = load_settlement_config()
    master = load_master_data()
    store = LocalArchiveStore(Path(args.archive_dir), config) if args.archive_dir else create_archive_store(config)
    relationships = config.relationships + [config.agency_relationship]

    try:
        if args.cumulative:
            _run_cumulative(args, store, config, relationships)
        else:
            _run_monthly(args, store, config, master, relationships)
    except SettlementError as e:
        print(f"❌ {type(e).__name__}: {e}")
        sys.exit(1)


def _run_monthly(args, store, config, master, relationships):
    if args.year is None or args.month is None:
        print("❌ --year, --month가 필요합니다")
        sys.exit(2)

    print(f"메이즈랜드 정산")
    print(f"기간: {args.year}-{args.month:02d}")

    with store.period_lock(args.year, args.month):
        record = store.get_monthly_record(args.year, args.month)

        if args.import_file:
            with open(args.import_file, "r", encoding="utf-8") as f:
                days = [DailyRecord.from_dict(d) for d in json.load(f)]
            if record is None:
                record = build_monthly_record(
                    args.year, args.month, days, master, config,
                    file_name=Path(args.import_file).name,
                )
            else:
                record = ingest_daily_records(
                    record, days, merge=not args.no_merge, master=master, config=config
                )
            store.save_monthly_record(record)
            print(f"✅ {len(days)}일 입력 완료 ({args.import_file})")

    if record is None:
        print(f"⚠️ {args.year}-{args.month:02d} 데이터가 없습니다")
        return

    settlement = record.settlement
    print(f"방문객: 온라인 {record.summary.online_count:,}명 / 현장 {record.summary.offline_count:,}명 "
          f"/ 합계 {record.summary.total_count:,}명")
    _print_flows(settlement.amounts, relationships)
    _print_companies(settlement.companies)

    print(f"\n[상계 입금액]")
    for t in settlement.net_transfers:
        print(f"  - {t.description}")

    if args.check:
        result = check_consistency(record, master)
        print(f"\n[점검] {'✅ 정상' if result['valid'] else '❌ 불일치'}")
        for error in result["errors"]:
            print(f"  ❌ {error}")
        for warning in result["warnings"]:
            print(f"  ⚠️ {warning}")

    if not args.no_excel:
        report_path = generate_monthly_report(record, args.output, config)
        print(f"\n[리포트 생성 완료] {report_path}")


def _run_cumulative(args, store, config, relationships):
    months = store.list_available_months()
    targets = select_months(months, args.cumulative, args.year)
    cumulative = rollup(
        store.list_records(targets), config,
        mode=args.cumulative, year=args.year, years=available_years(months),
    )

    print(f"\n{'='*70}")
    print(f"누적 정산: {args.cumulative}" + (f" ({args.year}년)" if args.cumulative == "yearly" else ""))
    print(f"{'='*70}")
    print(f"대상: {cumulative.month_count}개월, 방문객 {cumulative.total_visitors:,}명")

    _print_flows(cumulative.amounts, relationships)
    _print_companies(cumulative.companies)

    if not args.no_excel and cumulative.month_count:
        report_path = generate_cumulative_report(cumulative, args.output)
        print(f"\n[리포트 생성 완료] {report_path}")


if __name__ == "__main__":
    main()
