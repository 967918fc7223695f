"""
SQLite3 비동기 데이터베이스 패키지

사용 예시:
    from database.sqlite3 import SQLiteDatabase

    db = await SQLiteDatabase.create('default', config['database'])

    queries = db.load_queries('job_store', 'store/sql/job_store.sql')
    async with db.transaction() as ctx:
        await queries.compare_and_set_status(ctx.connection, ...)

    await db.close()
"""

from database.sqlite3.connection import (
    SQLiteDatabase,
    AsyncConnectionPool,
    TransactionContext,
    ManagedTransaction,
    PoolConfig,
    SqliteOptions,
    PooledConnection,
)

__all__ = [
    'SQLiteDatabase',
    'AsyncConnectionPool',
    'TransactionContext',
    'ManagedTransaction',
    'PoolConfig',
    'SqliteOptions',
    'PooledConnection',
]
