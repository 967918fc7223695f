"""데이터베이스 패키지 - SQLite 커넥션풀과 트랜잭션"""

from database.exception import (
    DatabaseError,
    ConnectionPoolExhaustedError,
    PoolClosedError,
)
from database.sqlite3 import SQLiteDatabase, TransactionContext

__all__ = [
    'DatabaseError',
    'ConnectionPoolExhaustedError',
    'PoolClosedError',
    'SQLiteDatabase',
    'TransactionContext',
]
