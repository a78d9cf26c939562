import logging
import re
from functools import wraps
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, TypeVar

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from forumbadges.utils.env import get_settings

T = TypeVar('T')
Params = Optional[Mapping[str, Any]]

logger = logging.getLogger(__name__)

_TABLE_RE = re.compile(r'\{([a-z_][a-z0-9_]*)\}')


def expand_tables(query: str, prefix: str) -> str:
    '''Replace `{table}` placeholders with prefixed table names.'''
    return _TABLE_RE.sub(lambda m: f'{prefix}{m.group(1)}', query)


def in_or_equal(
    values: Iterable[Any], prefix: str = 'param'
) -> Tuple[str, dict[str, Any]]:
    '''Build an `IN (...)` (or `= ...` for one value) fragment with named params.

    Returns the SQL fragment and the params it references, e.g.
    `in_or_equal([4, 7], 'forum')` -> ('IN (%(forum0)s, %(forum1)s)',
    {'forum0': 4, 'forum1': 7}).
    '''
    items = list(dict.fromkeys(values))
    if not items:
        raise ValueError('in_or_equal() needs at least one value')
    params = {f'{prefix}{i}': v for i, v in enumerate(items)}
    if len(items) == 1:
        return f'= %({prefix}0)s', params
    placeholders = ', '.join(f'%({name})s' for name in params)
    return f'IN ({placeholders})', params


def require_connection(func: Callable) -> Callable:
    '''Decorator to ensure DBManager is used within a context manager.'''

    @wraps(func)
    def wrapper(self: 'DBManager', *args, **kwargs) -> Any:
        if not self._connected:
            raise RuntimeError(
                'DBManager is not in a context. Use "with DBManager() as db:"'
            )
        return func(self, *args, **kwargs)

    return wrapper


class DBManager:
    '''Postgres query executor for the LMS database.

    Queries may reference tables as `{name}`; they are expanded with the
    configured table prefix. Params are a mapping for `%(name)s` placeholders.
    '''

    # Shared pool across the process
    _pool: Optional[ConnectionPool] = None

    def __init__(
        self, db_url: Optional[str] = None, table_prefix: Optional[str] = None
    ) -> None:
        settings = get_settings()
        self.db_url = db_url or settings.database_url
        self.table_prefix = (
            table_prefix if table_prefix is not None else settings.table_prefix
        )
        self._connected: bool = False
        self._pg_conn: Any | None = None
        self._from_pool: bool = False

    @classmethod
    def init_pool(
        cls,
        db_url: Optional[str] = None,
        min_size: int = 1,
        max_size: int = 10,
    ) -> None:
        '''Initialize a global connection pool for reuse across requests.'''
        if cls._pool is not None:
            return
        conninfo = db_url or get_settings().database_url
        if not conninfo:
            raise RuntimeError('DATABASE_URL is not set.')
        cls._pool = ConnectionPool(
            conninfo=conninfo,
            min_size=min_size,
            max_size=max_size,
            kwargs={'row_factory': dict_row},
        )
        logger.info('Initialized Postgres connection pool')

    @classmethod
    def close_pool(cls) -> None:
        '''Close the global connection pool if it exists.'''
        if cls._pool is not None:
            try:
                cls._pool.close()
            finally:
                cls._pool = None

    def _connect(self) -> None:
        if self.__class__._pool is not None:
            self._pg_conn = self.__class__._pool.getconn()
            self._from_pool = True
            return
        if not self.db_url:
            raise RuntimeError('DATABASE_URL is not set.')
        self._pg_conn = psycopg.connect(self.db_url, row_factory=dict_row)
        self._from_pool = False

    def _release(self) -> None:
        try:
            if self._from_pool and self.__class__._pool is not None:
                # a broken conn is discarded by the pool on put
                self.__class__._pool.putconn(self._pg_conn)
            elif self._pg_conn is not None:
                self._pg_conn.close()
        finally:
            self._pg_conn = None
            self._from_pool = False

    def __enter__(self) -> 'DBManager':
        self._connect()
        self._connected = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if not self._connected:
            return
        try:
            if exc_type is None:
                self._pg_conn.commit()
            else:
                self._pg_conn.rollback()
        finally:
            self._release()
            self._connected = False

    def _reconnect(self) -> None:
        try:
            self._release()
        except Exception as e:  # best-effort close
            logger.warning(f'Error while closing connection during reconnect: {e}')
        self._connect()

    def _run_with_retry(self, fn: Callable[[], T]) -> T:
        '''Run DB exec, reconnect on OperationalError/InterfaceError, retry once'''
        try:
            return fn()
        except (psycopg.OperationalError, psycopg.InterfaceError) as e:
            logger.warning(
                f'DB operation failed due to connection issue: {e}. '
                f'Reconnecting and retrying once...'
            )
            self._reconnect()
            return fn()

    def _exec_pg(self, query: str, params: Params) -> None:
        assert self._pg_conn is not None
        with self._pg_conn.cursor() as cur:
            cur.execute(expand_tables(query, self.table_prefix), params)

    def _select_pg(self, query: str, params: Params) -> List[dict[str, Any]]:
        assert self._pg_conn is not None
        with self._pg_conn.cursor() as cur:
            cur.execute(expand_tables(query, self.table_prefix), params)
            return cur.fetchall()

    @require_connection
    def execute(self, query: str, params: Params = None) -> None:
        '''Execute a single SQL statement.'''
        try:
            self._run_with_retry(lambda: self._exec_pg(query, params))
        except Exception as e:
            logger.error(
                f'Postgres execute() error: {e}\nQuery: {query}\nParams: {params}'
            )
            raise

    @require_connection
    def fetchall(self, query: str, params: Params = None) -> List[dict[str, Any]]:
        '''Return all rows as a list of dictionaries.'''
        try:
            return self._run_with_retry(lambda: self._select_pg(query, params))
        except Exception as e:
            logger.error(
                f'Postgres fetchall() error: {e}\nQuery: {query}\nParams: {params}'
            )
            raise

    @require_connection
    def fetchone(self, query: str, params: Params = None) -> Optional[dict[str, Any]]:
        '''Return a single row as a dictionary, or None if no result.'''
        rows = self.fetchall(query, params)
        return rows[0] if rows else None
