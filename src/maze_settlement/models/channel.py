"""
Channel / Category 마스터 데이터 모델
=====================================
인터넷 판매 채널(수수료율 보유)과 현장 판매 카테고리
"""

from dataclasses import dataclass


@dataclass
class Channel:
    """인터넷 판매 채널"""
    code: str
    name: str
    fee_rate: float = 0.0  # 수수료율 (%)
    order: int = 0
    active: bool = True


@dataclass
class Category:
    """현장 판매 카테고리 (수수료 없음)"""
    code: str
    name: str
    order: int = 0
    active: bool = True
