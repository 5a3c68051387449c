"""
정산 엔진 예외 정의
====================
모든 예외는 동기적으로 발생하며, 실패한 작업은 부분 적용되지 않습니다.
"""


class SettlementError(Exception):
    """정산 엔진 공통 예외"""
    pass


class InvalidInputError(SettlementError):
    """잘못된 입력 (음수 인원, 내역 합계 불일치 등)"""
    pass


class NotFoundError(SettlementError):
    """조회 대상 기간 또는 날짜가 존재하지 않음"""
    pass


class InvalidRateError(SettlementError):
    """수수료율이 0~100 범위를 벗어남"""
    pass
