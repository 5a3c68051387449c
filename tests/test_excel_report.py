"""
엑셀 리포트 테스트
"""
from pathlib import Path

import pandas as pd

from maze_settlement.core.cumulative import MODE_YEARLY, rollup
from maze_settlement.reports.excel_report import generate_cumulative_report, generate_monthly_report


def test_monthly_report_sheets(tmp_path, january_record):
    report_path = Path(generate_monthly_report(january_record, str(tmp_path)))
    assert report_path.parent == tmp_path / "2025-01"
    assert report_path.name.startswith("Maze_Settlement_Report_2025-01_")

    sheets = pd.read_excel(report_path, sheet_name=None)
    assert list(sheets) == ["Summary", "Flows", "NetTransfers", "Channels", "Daily"]
    assert list(sheets["Summary"]["회사코드"]) == ["SKP", "MAZE", "CULTURE", "AGENCY"]
    assert len(sheets["Flows"]) == 6
    assert sheets["Daily"]["합계"].sum() == 43


def test_cumulative_report(tmp_path, january_record, february_record):
    cumulative = rollup([january_record, february_record], mode=MODE_YEARLY, year=2025)
    report_path = Path(generate_cumulative_report(cumulative, str(tmp_path)))
    assert report_path.parent == tmp_path / "cumulative_2025"

    sheets = pd.read_excel(report_path, sheet_name=None)
    assert list(sheets) == ["Summary", "Flows", "Monthly"]
    assert list(sheets["Monthly"]["년월"]) == ["2025-01", "2025-02"]
    assert list(sheets["Monthly"]["방문객"]) == [43, 43]
