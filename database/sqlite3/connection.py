"""
SQLite3 비동기 커넥션풀 모듈

aiosqlite를 사용하여 비동기 SQLite3 커넥션풀을 제공합니다.
잡 저장소(store.sqlite)는 이 모듈의 트랜잭션 위에서 조건부 UPDATE를 수행합니다.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import aiosqlite
import aiosql
from aiosql.queries import Queries

from database.exception import (
    ConnectionPoolExhaustedError,
    PoolClosedError,
)

logger = logging.getLogger(__name__)


@dataclass
class PoolConfig:
    """커넥션풀 설정"""
    pool_size: int = 8
    pool_timeout: float = 30.0


@dataclass
class SqliteOptions:
    """SQLite 연결 옵션"""
    busy_timeout: int = 5000
    journal_mode: str = 'WAL'
    synchronous: str = 'NORMAL'
    cache_size: int = -2000


@dataclass
class PooledConnection:
    """풀에서 관리되는 연결"""
    connection: aiosqlite.Connection
    in_use: bool = False


class TransactionContext:
    """SQLite 트랜잭션 컨텍스트"""

    def __init__(self, connection: aiosqlite.Connection, readonly: bool = False):
        self._connection = connection
        self._readonly = readonly
        self._in_transaction = False

    @property
    def connection(self) -> aiosqlite.Connection:
        return self._connection

    async def begin(self) -> None:
        """트랜잭션 시작

        쓰기 트랜잭션은 BEGIN IMMEDIATE로 시작하여 시작 시점에 쓰기 잠금을 잡는다.
        """
        if self._in_transaction:
            logger.warning("Transaction already started")
            return
        if self._readonly:
            await self._connection.execute("BEGIN DEFERRED")
        else:
            await self._connection.execute("BEGIN IMMEDIATE")
        self._in_transaction = True

    async def commit(self) -> None:
        """트랜잭션 커밋"""
        if not self._in_transaction:
            logger.warning("No active transaction to commit")
            return
        await self._connection.commit()
        self._in_transaction = False
        logger.debug("Transaction committed")

    async def rollback(self) -> None:
        """트랜잭션 롤백"""
        if not self._in_transaction:
            logger.warning("No active transaction to rollback")
            return
        await self._connection.rollback()
        self._in_transaction = False
        logger.debug("Transaction rolled back")


class AsyncConnectionPool:
    """비동기 SQLite 커넥션풀"""

    def __init__(
        self,
        db_path: str,
        pool_config: PoolConfig | None = None,
        sqlite_options: SqliteOptions | None = None
    ):
        self._db_path = Path(db_path)
        self._pool_config = pool_config or PoolConfig()
        self._sqlite_options = sqlite_options or SqliteOptions()

        self._pool: list[PooledConnection] = []
        self._lock = asyncio.Lock()
        self._semaphore: asyncio.Semaphore | None = None
        self._initialized = False
        self._closed = False

    async def initialize(self) -> None:
        """커넥션풀 초기화"""
        if self._initialized:
            logger.warning("Connection pool already initialized")
            return

        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._semaphore = asyncio.Semaphore(self._pool_config.pool_size)

        for _ in range(self._pool_config.pool_size):
            conn = await self._create_connection()
            self._pool.append(PooledConnection(connection=conn))

        self._initialized = True
        logger.info(
            f"Connection pool initialized: {self._db_path} "
            f"(size={self._pool_config.pool_size}, timeout={self._pool_config.pool_timeout}s)"
        )

    async def _create_connection(self) -> aiosqlite.Connection:
        """새로운 SQLite 연결 생성 (PRAGMA 적용)"""
        conn = await aiosqlite.connect(
            self._db_path,
            timeout=self._sqlite_options.busy_timeout / 1000.0
        )
        conn.row_factory = aiosqlite.Row

        await conn.execute(f"PRAGMA busy_timeout={self._sqlite_options.busy_timeout}")
        await conn.execute(f"PRAGMA journal_mode={self._sqlite_options.journal_mode}")
        await conn.execute(f"PRAGMA synchronous={self._sqlite_options.synchronous}")
        await conn.execute(f"PRAGMA cache_size={self._sqlite_options.cache_size}")
        return conn

    async def acquire(self, timeout: float | None = None) -> PooledConnection:
        """커넥션풀에서 연결 획득"""
        if not self._initialized or self._closed:
            raise PoolClosedError(f"Connection pool is not available: {self._db_path}")

        timeout = timeout or self._pool_config.pool_timeout

        try:
            await asyncio.wait_for(self._semaphore.acquire(), timeout=timeout)
        except asyncio.TimeoutError:
            raise ConnectionPoolExhaustedError(
                f"Connection pool exhausted. Timeout after {timeout}s"
            )

        async with self._lock:
            # 대기 중에 close() 된 경우
            if self._closed:
                self._semaphore.release()
                raise PoolClosedError(f"Connection pool closed: {self._db_path}")
            for pooled_conn in self._pool:
                if not pooled_conn.in_use:
                    pooled_conn.in_use = True
                    return pooled_conn

        self._semaphore.release()
        raise ConnectionPoolExhaustedError("No available connection in pool")

    async def release(self, pooled_conn: PooledConnection) -> None:
        """연결을 풀에 반환"""
        async with self._lock:
            pooled_conn.in_use = False
        self._semaphore.release()

    async def close(self) -> None:
        """모든 연결을 닫고 풀 종료"""
        if self._closed:
            return
        self._closed = True

        async with self._lock:
            for pooled_conn in self._pool:
                try:
                    await pooled_conn.connection.close()
                except Exception as e:
                    logger.error(f"Error closing connection: {e}")
            self._pool.clear()

        logger.info("Connection pool closed")


class ManagedTransaction:
    """트랜잭션 컨텍스트 매니저

    예외 없이 블록을 빠져나오면 커밋, 예외 발생 시 롤백 후 연결을 풀에 반환한다.
    """

    def __init__(self, db: 'SQLiteDatabase', readonly: bool = False):
        self._db = db
        self._readonly = readonly
        self._pooled_conn: PooledConnection | None = None
        self._ctx: TransactionContext | None = None

    async def __aenter__(self) -> TransactionContext:
        self._pooled_conn = await self._db.pool.acquire()
        self._ctx = TransactionContext(self._pooled_conn.connection, self._readonly)
        try:
            await self._ctx.begin()
        except BaseException:
            await self._db.pool.release(self._pooled_conn)
            raise
        return self._ctx

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        try:
            if exc_type:
                await self._ctx.rollback()
            else:
                await self._ctx.commit()
        finally:
            await self._db.pool.release(self._pooled_conn)


class SQLiteDatabase:
    """
    SQLite 데이터베이스

    사용 예시:
        db = await SQLiteDatabase.create('default', config)

        queries = db.load_queries('job_store', 'store/sql/job_store.sql')
        async with db.transaction() as ctx:
            await queries.compare_and_set_status(ctx.connection, ...)

        await db.close()
    """

    def __init__(self, name: str, config: dict[str, Any]):
        self.name = name
        self._config = config
        self._pool: AsyncConnectionPool | None = None
        self._queries: dict[str, Queries] = {}

    @classmethod
    async def create(cls, name: str, config: dict[str, Any]) -> 'SQLiteDatabase':
        """SQLiteDatabase 인스턴스 생성 및 초기화"""
        instance = cls(name, config)
        await instance._initialize()
        return instance

    async def _initialize(self) -> None:
        pool_cfg = self._config.get('pool', {})
        pool_config = PoolConfig(
            pool_size=pool_cfg.get('pool_size', 8),
            pool_timeout=pool_cfg.get('pool_timeout', 30.0),
        )

        opts = self._config.get('options', {})
        sqlite_options = SqliteOptions(
            busy_timeout=opts.get('busy_timeout', 5000),
            journal_mode=opts.get('journal_mode', 'WAL'),
            synchronous=opts.get('synchronous', 'NORMAL'),
            cache_size=opts.get('cache_size', -2000),
        )

        self._pool = AsyncConnectionPool(
            db_path=self._config.get('path', f'./data/{self.name}.db'),
            pool_config=pool_config,
            sqlite_options=sqlite_options
        )
        await self._pool.initialize()
        await self._run_init_sql()

        logger.info(f"SQLiteDatabase '{self.name}' initialized successfully")

    async def _run_init_sql(self) -> None:
        """초기 테이블 생성 SQL 실행 (init.sql의 모든 스크립트)"""
        init_sql_path = Path(__file__).parent / 'sql' / 'init.sql'
        queries = aiosql.from_path(str(init_sql_path), "aiosqlite")
        pooled_conn = await self._pool.acquire()
        try:
            await queries.create_jobs_table(pooled_conn.connection)
            await queries.create_jobs_indexes(pooled_conn.connection)
            await pooled_conn.connection.commit()
            logger.info("Initial tables created from init.sql")
        finally:
            await self._pool.release(pooled_conn)

    def transaction(self, readonly: bool = False) -> ManagedTransaction:
        """트랜잭션 컨텍스트 매니저 반환"""
        return ManagedTransaction(self, readonly)

    @property
    def pool(self) -> AsyncConnectionPool:
        if self._pool is None:
            raise PoolClosedError(f"Database '{self.name}' not initialized")
        return self._pool

    def load_queries(self, name: str, sql_path: str) -> Queries:
        """aiosql로 SQL 파일 로드 (이름별 캐시)"""
        if name not in self._queries:
            self._queries[name] = aiosql.from_path(sql_path, "aiosqlite")
        return self._queries[name]

    async def close(self) -> None:
        """데이터베이스 연결 종료"""
        if self._pool:
            await self._pool.close()
        logger.info(f"SQLiteDatabase '{self.name}' closed")
