import pandas as pd
from pathlib import Path
from datetime import datetime
from typing import Optional

from ..core.config import DEFAULT_CONFIG, SettlementConfig
from ..core.ledger import compute_monthly_settlement
from ..models.record import MonthlyRecord
from ..models.settlement import CumulativeSettlement


def _company_frame(companies) -> pd.DataFrame:
    return pd.DataFrame([
        {
            "회사코드": c.code,
            "회사명": c.name,
            "매출": c.revenue,
            "수익": c.income,
            "비용": c.expense,
            "이익": c.profit,
            "이익률(%)": c.profit_rate,
        }
        for c in companies
    ])


def _report_path(output_dir: str, period: str, prefix: str) -> Path:
    output_path = Path(output_dir) / period
    output_path.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return output_path / f"{prefix}_{period}_{timestamp}.xlsx"


def generate_monthly_report(
    record: MonthlyRecord,
    output_dir: str = "output",
    config: SettlementConfig = DEFAULT_CONFIG,
) -> str:
    """
    월 정산 결과를 엑셀 리포트로 생성합니다.
    시트: 기업별 요약 / 정산 항목 / 상계 입금 / 채널별 / 일별
    """
    settlement = record.settlement or compute_monthly_settlement(record, config)
    file_path = _report_path(output_dir, record.period, "Maze_Settlement_Report")

    df_summary = _company_frame(settlement.companies)
    df_flows = pd.DataFrame([
        {
            "항목": f.id,
            "발행처": f.source,
            "수취처": f.destination,
            "구분": "매출" if f.is_revenue else "비매출",
            "금액": f.amount,
            "설명": f.description,
        }
        for f in settlement.flows
    ])
    df_transfers = pd.DataFrame([
        {"구분": t.pair, "입금처": t.from_code, "수취처": t.to_code, "금액": t.amount, "내용": t.description}
        for t in settlement.net_transfers
    ])
    df_channels = pd.DataFrame([
        {
            "채널코드": line.code,
            "채널명": line.name,
            "인원": line.count,
            "수수료율(%)": line.fee_rate,
            "총액": line.gross,
            "수수료": line.fee,
            "순액": line.net,
        }
        for line in settlement.channel_breakdown
    ])
    df_daily = pd.DataFrame([
        {"날짜": d.date.isoformat(), "온라인": d.online, "현장": d.offline, "합계": d.total}
        for d in record.days
    ])

    with pd.ExcelWriter(file_path, engine="openpyxl") as writer:
        df_summary.to_excel(writer, sheet_name="Summary", index=False)
        df_flows.to_excel(writer, sheet_name="Flows", index=False)
        df_transfers.to_excel(writer, sheet_name="NetTransfers", index=False)
        df_channels.to_excel(writer, sheet_name="Channels", index=False)
        df_daily.to_excel(writer, sheet_name="Daily", index=False)

    return str(file_path)


def generate_cumulative_report(
    cumulative: CumulativeSettlement,
    output_dir: str = "output",
    label: Optional[str] = None,
) -> str:
    """누적 정산 결과를 엑셀 리포트로 생성합니다. (기업별 요약 + 월별 항목 금액)"""
    label = label or (str(cumulative.year) if cumulative.year else "all")
    file_path = _report_path(output_dir, f"cumulative_{label}", "Maze_Cumulative_Report")

    df_summary = _company_frame(cumulative.companies)
    monthly_rows = []
    for line in cumulative.monthly:
        row = {"년월": f"{line.year:04d}-{line.month:02d}", "방문객": line.visitors}
        row.update(line.amounts)
        monthly_rows.append(row)
    df_monthly = pd.DataFrame(monthly_rows)
    df_amounts = pd.DataFrame(
        [{"항목": k, "누적 금액": v} for k, v in cumulative.amounts.items()]
    )

    with pd.ExcelWriter(file_path, engine="openpyxl") as writer:
        df_summary.to_excel(writer, sheet_name="Summary", index=False)
        df_amounts.to_excel(writer, sheet_name="Flows", index=False)
        df_monthly.to_excel(writer, sheet_name="Monthly", index=False)

    return str(file_path)
