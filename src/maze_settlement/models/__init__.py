"""
메이즈랜드 정산 - 데이터 모델
"""

from .company import COMPANY_CODES, DEFAULT_COMPANIES, Company, CompanySettlement
from .channel import Category, Channel
from .settlement import (
    ChannelLine,
    CumulativeSettlement,
    MonthlyLine,
    NetTransfer,
    SettlementFlow,
    SettlementResult,
)
from .record import (
    CategorySales,
    ChannelSales,
    DailyRecord,
    MonthlyRecord,
    Summary,
    parse_date,
)

__all__ = [
    "COMPANY_CODES",
    "DEFAULT_COMPANIES",
    "Company",
    "CompanySettlement",
    "Category",
    "Channel",
    "ChannelLine",
    "CumulativeSettlement",
    "MonthlyLine",
    "NetTransfer",
    "SettlementFlow",
    "SettlementResult",
    "CategorySales",
    "ChannelSales",
    "DailyRecord",
    "MonthlyRecord",
    "Summary",
    "parse_date",
]
