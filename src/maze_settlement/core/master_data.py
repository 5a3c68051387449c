"""
마스터 데이터
=============
- 채널 목록 (인터넷 판매, 수수료율 보유)
- 카테고리 목록 (현장 판매)
- 정산 당사자 기업 목록

data/master_data.json, data/companies.json이 있으면 해당 파일을, 없으면 내장 기본값을 사용합니다.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from .. import settings
from ..models.channel import Category, Channel
from ..models.company import DEFAULT_COMPANIES, Company

logger = logging.getLogger(__name__)


DEFAULT_FEE_RATE = 15.0

DEFAULT_CHANNELS: List[Channel] = [
    Channel("NAVER_MAZE_25", "네이버 메이즈랜드25년", 10, 1),
    Channel("GENERAL_TICKET", "일반채널 입장권", 15, 2),
    Channel("MAZE_TICKET", "메이즈랜드 입장권", 12, 3),
    Channel("MAZE_TICKET_SINGLE", "메이즈랜드 입장권(단품)", 12, 4),
    Channel("OTHER", "기타", 15, 99),
]

DEFAULT_CATEGORIES: List[Category] = [
    Category("INDIVIDUAL", "개인", 1),
    Category("TRAVEL_AGENCY", "여행사", 2),
    Category("TAXI", "택시", 3),
    Category("RESIDENT", "도민", 4),
    Category("ALL_PASS", "올패스", 5),
    Category("SHUTTLE_DISCOUNT", "순환버스할인", 6),
    Category("SCHOOL_GROUP", "학단", 7),
    Category("OTHER", "기타", 99),
]


class MasterData:
    """채널/카테고리 조회"""

    def __init__(self, channels: Iterable[Channel], categories: Iterable[Category]):
        self.channels: Dict[str, Channel] = {c.code: c for c in channels}
        self.categories: Dict[str, Category] = {c.code: c for c in categories}

    def get_channel(self, code: str) -> Optional[Channel]:
        return self.channels.get(code)

    def get_category(self, code: str) -> Optional[Category]:
        return self.categories.get(code)

    def channel_fee_rate(self, code: str, default: float = DEFAULT_FEE_RATE) -> float:
        channel = self.channels.get(code)
        return channel.fee_rate if channel else default

    def channel_name(self, code: str) -> str:
        channel = self.channels.get(code)
        return channel.name if channel else code

    def category_name(self, code: str) -> str:
        category = self.categories.get(code)
        return category.name if category else code

    def active_channels(self) -> List[Channel]:
        return sorted((c for c in self.channels.values() if c.active), key=lambda c: c.order)

    def active_categories(self) -> List[Category]:
        return sorted((c for c in self.categories.values() if c.active), key=lambda c: c.order)

    def unknown_channels(self, codes: Iterable[str]) -> List[str]:
        return sorted(code for code in codes if code not in self.channels)

    def unknown_categories(self, codes: Iterable[str]) -> List[str]:
        return sorted(code for code in codes if code not in self.categories)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "channels": [
                {"code": c.code, "name": c.name, "fee_rate": c.fee_rate, "order": c.order}
                for c in self.active_channels()
            ],
            "categories": [
                {"code": c.code, "name": c.name, "order": c.order}
                for c in self.active_categories()
            ],
        }


DEFAULT_MASTER = MasterData(DEFAULT_CHANNELS, DEFAULT_CATEGORIES)


def load_master_data(path: Optional[Path] = None) -> MasterData:
    """마스터 데이터 로드 (파일이 없으면 내장 기본값)"""
    master_path = Path(path) if path else settings.DATA_DIR / "master_data.json"
    if not master_path.exists():
        return DEFAULT_MASTER

    with open(master_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    channels = [
        Channel(
            code=c["code"],
            name=c.get("name", c["code"]),
            fee_rate=float(c.get("fee_rate", DEFAULT_FEE_RATE)),
            order=c.get("order", 0),
            active=c.get("active", True),
        )
        for c in data.get("channels", [])
    ]
    categories = [
        Category(
            code=c["code"],
            name=c.get("name", c["code"]),
            order=c.get("order", 0),
            active=c.get("active", True),
        )
        for c in data.get("categories", [])
    ]
    logger.info("마스터 데이터 로드: 채널 %d개, 카테고리 %d개", len(channels), len(categories))
    return MasterData(channels or DEFAULT_CHANNELS, categories or DEFAULT_CATEGORIES)


def load_companies(path: Optional[Path] = None) -> Dict[str, Company]:
    """기업 정보 로드 (파일이 없으면 기본 4개사)"""
    companies_path = Path(path) if path else settings.DATA_DIR / "companies.json"
    if not companies_path.exists():
        return dict(DEFAULT_COMPANIES)

    with open(companies_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    companies = dict(DEFAULT_COMPANIES)
    for company in data.get("companies", []):
        companies[company["code"]] = Company(
            code=company["code"],
            name=company.get("name", company["code"]),
            type=company.get("type", ""),
        )
    return companies
