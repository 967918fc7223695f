"""
Database 관련 예외 클래스 정의
"""


class DatabaseError(Exception):
    """Database 기본 예외"""
    pass


class ConnectionPoolExhaustedError(DatabaseError):
    """커넥션풀에서 연결을 얻지 못함 (타임아웃)"""
    pass


class PoolClosedError(DatabaseError):
    """이미 종료되었거나 초기화되지 않은 커넥션풀 사용"""
    pass
