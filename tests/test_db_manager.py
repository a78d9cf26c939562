import pytest

from forumbadges.database.db_manager import DBManager, expand_tables, in_or_equal


def test_expand_tables_applies_prefix():
    sql = 'SELECT * FROM {forum_posts} p JOIN {forum_discussions} d ON d.id = p.discussion'
    assert expand_tables(sql, 'mdl_') == (
        'SELECT * FROM mdl_forum_posts p JOIN mdl_forum_discussions d ON d.id = p.discussion'
    )
    assert expand_tables('%(forum0)s', 'mdl_') == '%(forum0)s'


def test_in_or_equal_single_value():
    assert in_or_equal([5], 'u') == ('= %(u0)s', {'u0': 5})


def test_in_or_equal_many_values_deduplicated():
    fragment, params = in_or_equal([3, 1, 3], 'u')
    assert fragment == 'IN (%(u0)s, %(u1)s)'
    assert params == {'u0': 3, 'u1': 1}


def test_in_or_equal_requires_values():
    with pytest.raises(ValueError):
        in_or_equal([])


def test_queries_need_a_context(monkeypatch):
    monkeypatch.setenv('DATABASE_URL', 'postgresql://localhost/lms')
    db = DBManager()
    with pytest.raises(RuntimeError):
        db.fetchall('SELECT 1')


def test_table_prefix_from_environment(monkeypatch):
    monkeypatch.setenv('DB_TABLE_PREFIX', 'lms_')
    assert DBManager().table_prefix == 'lms_'
    assert DBManager(table_prefix='').table_prefix == ''


class _Cursor:
    def __init__(self, calls):
        self.calls = calls

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def execute(self, query, params):
        self.calls.append((query, params))

    def fetchall(self):
        return [{'id': 1}]


class _Conn:
    def __init__(self):
        self.calls = []

    def cursor(self):
        return _Cursor(self.calls)

    def commit(self):
        pass

    def close(self):
        pass


def test_named_params_pass_through_with_expanded_tables(monkeypatch):
    conn = _Conn()
    monkeypatch.setattr(DBManager, '_connect', lambda self: setattr(self, '_pg_conn', conn))

    with DBManager(db_url='postgresql://localhost/lms', table_prefix='mdl_') as db:
        assert db.fetchone('SELECT id FROM {user} WHERE id = %(id)s', {'id': 1}) == {'id': 1}
        db.execute('DELETE FROM {badge_issued}')

    assert conn.calls == [
        ('SELECT id FROM mdl_user WHERE id = %(id)s', {'id': 1}),
        ('DELETE FROM mdl_badge_issued', None),
    ]
