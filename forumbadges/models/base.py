from contextlib import contextmanager
from typing import Any, ClassVar, Iterator, Mapping, Optional, cast

from forumbadges.database.db_manager import DBManager


@contextmanager
def _session(db: Any = None) -> Iterator[Any]:
    '''Use the caller's executor when given, else open a DBManager context.'''
    if db is not None:
        yield db
        return
    with DBManager() as own:
        yield own


class BaseModel:
    '''Thin row helpers over one LMS table.

    Every method takes an optional `db` executor so a caller already holding
    a connection (the review engine) does not open another one.
    '''

    table: ClassVar[str]
    pk: ClassVar[str] = 'id'

    @classmethod
    def _from(cls) -> str:
        return '{' + cls.table + '}'

    @classmethod
    def get(cls, id_value: Any, db: Any = None) -> Optional[dict[str, Any]]:
        with _session(db) as conn:
            row = conn.fetchone(
                f'SELECT * FROM {cls._from()} WHERE {cls.pk} = %(id)s', {'id': id_value}
            )
        return cast(Optional[dict[str, Any]], row)

    @classmethod
    def get_many(
        cls,
        where: str = '',
        params: Optional[Mapping[str, Any]] = None,
        order_by: str = '',
        db: Any = None,
    ) -> list[dict[str, Any]]:
        query_parts: list[str] = [f'SELECT * FROM {cls._from()}']
        if where:
            query_parts.append(f'WHERE {where}')
        if order_by:
            query_parts.append(f'ORDER BY {order_by}')

        with _session(db) as conn:
            rows = conn.fetchall(' '.join(query_parts), dict(params or {}))
        return cast(list[dict[str, Any]], rows)

    @classmethod
    def create(cls, values: Mapping[str, Any], db: Any = None) -> dict[str, Any]:
        cols = list(values.keys())
        placeholders = ', '.join(f'%({c})s' for c in cols)
        sql_query = (
            f'INSERT INTO {cls._from()} ({", ".join(cols)}) '
            f'VALUES ({placeholders}) RETURNING *'
        )
        with _session(db) as conn:
            rows = conn.fetchall(sql_query, dict(values))
        return cast(dict[str, Any], rows[0]) if rows else {}

    @classmethod
    def delete_where(
        cls, where: str, params: Mapping[str, Any], db: Any = None
    ) -> None:
        with _session(db) as conn:
            conn.execute(f'DELETE FROM {cls._from()} WHERE {where}', dict(params))
