import re
import sqlite3
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import pytest

from forumbadges.database.db_manager import expand_tables

_NAMED_RE = re.compile(r'%\((\w+)\)s')

SCHEMA = '''
CREATE TABLE mdl_course (
    id INTEGER PRIMARY KEY, fullname TEXT DEFAULT '', shortname TEXT DEFAULT '',
    enablecompletion INTEGER DEFAULT 0, startdate INTEGER DEFAULT 0
);
CREATE TABLE mdl_modules (id INTEGER PRIMARY KEY, name TEXT UNIQUE, visible INTEGER DEFAULT 1);
CREATE TABLE mdl_course_modules (
    id INTEGER PRIMARY KEY, course INTEGER, module INTEGER, instance INTEGER,
    visible INTEGER DEFAULT 1, timemodified INTEGER DEFAULT 0
);
CREATE TABLE mdl_forum (
    id INTEGER PRIMARY KEY, course INTEGER, name TEXT, assessed INTEGER DEFAULT 0,
    timemodified INTEGER DEFAULT 0
);
CREATE TABLE mdl_forum_discussions (
    id INTEGER PRIMARY KEY, course INTEGER, forum INTEGER, name TEXT DEFAULT '',
    userid INTEGER
);
CREATE TABLE mdl_forum_posts (
    id INTEGER PRIMARY KEY, discussion INTEGER, parent INTEGER DEFAULT 0,
    userid INTEGER, created INTEGER DEFAULT 0, modified INTEGER DEFAULT 0,
    subject TEXT DEFAULT ''
);
CREATE TABLE mdl_rating (
    id INTEGER PRIMARY KEY, component TEXT, ratingarea TEXT, itemid INTEGER,
    userid INTEGER, rating INTEGER DEFAULT 1, timecreated INTEGER DEFAULT 0,
    timemodified INTEGER DEFAULT 0
);
CREATE TABLE mdl_user (
    id INTEGER PRIMARY KEY, username TEXT UNIQUE, firstname TEXT DEFAULT '',
    lastname TEXT DEFAULT '', deleted INTEGER DEFAULT 0
);
CREATE TABLE mdl_badge (
    id INTEGER PRIMARY KEY, name TEXT, courseid INTEGER NULL,
    type INTEGER DEFAULT 2, status INTEGER DEFAULT 0
);
CREATE TABLE mdl_badge_criteria (
    id INTEGER PRIMARY KEY, badgeid INTEGER, criteriatype INTEGER,
    method INTEGER DEFAULT 1, description TEXT NULL
);
CREATE TABLE mdl_badge_criteria_param (
    id INTEGER PRIMARY KEY, critid INTEGER, name TEXT, value TEXT
);
CREATE TABLE mdl_badge_issued (
    id INTEGER PRIMARY KEY, badgeid INTEGER, userid INTEGER, dateissued INTEGER
);
'''


@dataclass
class FakeDB:
    fetchone_results: list[Any] = field(default_factory=list)
    fetchall_results: list[Any] = field(default_factory=list)
    executed: list[tuple[str, Any]] = field(default_factory=list)
    queries: list[tuple[str, Any]] = field(default_factory=list)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def fetchone(self, query: str, params=None):
        self.queries.append((query, params))
        if self.fetchone_results:
            return self.fetchone_results.pop(0)

    def fetchall(self, query: str, params=None):
        self.queries.append((query, params))
        if self.fetchall_results:
            return self.fetchall_results.pop(0)
        return []

    def execute(self, query: str, params=None) -> None:
        self.executed.append((query, params))


class SQLiteDB:
    '''In-memory executor speaking the same dialect as DBManager.'''

    def __init__(self, prefix: str = 'mdl_') -> None:
        self.prefix = prefix
        self.conn = sqlite3.connect(':memory:')
        self.conn.row_factory = sqlite3.Row
        self.conn.executescript(SCHEMA)
        self.queries: list[str] = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def _run(self, query: str, params: Optional[Mapping[str, Any]]):
        sql = _NAMED_RE.sub(r':\1', expand_tables(query, self.prefix))
        self.queries.append(sql)
        return self.conn.execute(sql, dict(params or {}))

    def fetchall(self, query: str, params=None) -> list[dict[str, Any]]:
        return [dict(r) for r in self._run(query, params).fetchall()]

    def fetchone(self, query: str, params=None) -> Optional[dict[str, Any]]:
        rows = self.fetchall(query, params)
        return rows[0] if rows else None

    def execute(self, query: str, params=None) -> None:
        self._run(query, params)


class LMS:
    '''Builds course/forum/post/rating fixture rows in a SQLiteDB.'''

    def __init__(self, db: SQLiteDB) -> None:
        self.db = db
        self._ids: dict[str, int] = {}
        self.forum_module = self._insert('modules', name='forum', visible=1)

    def _insert(self, table: str, **values: Any) -> int:
        cols = ', '.join(values)
        marks = ', '.join(f'%({c})s' for c in values)
        row = self.db.fetchone(
            f'INSERT INTO {{{table}}} ({cols}) VALUES ({marks}) RETURNING id', values
        )
        assert row is not None
        return int(row['id'])

    def course(self, startdate: int = 1000) -> int:
        return self._insert('course', fullname='Course', startdate=startdate)

    def forum(self, course: int, name: str, assessed: int = 2) -> tuple[int, int]:
        '''Returns (course module id, forum id).'''
        forum_id = self._insert('forum', course=course, name=name, assessed=assessed)
        cmid = self._insert(
            'course_modules', course=course, module=self.forum_module, instance=forum_id
        )
        return cmid, forum_id

    def discussion(self, course: int, forum: int) -> int:
        return self._insert('forum_discussions', course=course, forum=forum, userid=0)

    def post(self, discussion: int, userid: int, created: int, parent: int = 0) -> int:
        return self._insert(
            'forum_posts',
            discussion=discussion,
            userid=userid,
            parent=parent,
            created=created,
            modified=created,
        )

    def rate(self, post: int, rater: int, created: int) -> int:
        return self._insert(
            'rating',
            component='mod_forum',
            ratingarea='post',
            itemid=post,
            userid=rater,
            timecreated=created,
            timemodified=created,
        )

    def user(self, userid: int) -> int:
        return self._insert('user', id=userid, username=f'user{userid}')

    def badge(self, course: Optional[int], name: str = 'Social butterfly') -> int:
        return self._insert('badge', name=name, courseid=course)

    def issue(self, badge: int, userid: int, when: int) -> int:
        return self._insert('badge_issued', badgeid=badge, userid=userid, dateissued=when)


@pytest.fixture()
def fake_db() -> FakeDB:
    return FakeDB()


@pytest.fixture()
def sqlite_db() -> SQLiteDB:
    return SQLiteDB()


@pytest.fixture()
def lms(sqlite_db) -> LMS:
    return LMS(sqlite_db)


@pytest.fixture()
def clean_registry():
    from forumbadges.criteria.registry import registry

    before = list(registry.all())
    registry._types.clear()  # type: ignore[attr-defined]
    try:
        yield registry
    finally:
        registry._types.clear()  # type: ignore[attr-defined]
        for criterion_cls in before:
            registry.register(criterion_cls)
