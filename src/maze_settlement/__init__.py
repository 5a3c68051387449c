"""
메이즈랜드 정산 엔진
====================
일별 방문객 수 → 월 집계 → 4개사(SKP / 메이즈랜드 / 컬처커넥션 / FMC) 정산
"""

__version__ = "1.0.0"
