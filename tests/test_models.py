from forumbadges.models.badge import Badge
from forumbadges.models.badge_issued import BadgeIssued


def test_badge_course_falls_back_to_site_course(monkeypatch, fake_db):
    monkeypatch.setenv('SITE_COURSE_ID', '3')
    fake_db.fetchone_results = [
        {'id': None, 'enablecompletion': None, 'startdate': None},
        {'id': 3, 'enablecompletion': 1, 'startdate': 50},
    ]

    course = Badge.get_course(8, db=fake_db)

    assert course == {'id': 3, 'enablecompletion': 1, 'startdate': 50}
    assert fake_db.queries[1][1] == {'id': 3}


def test_badge_course_without_site_row(monkeypatch, fake_db):
    monkeypatch.delenv('SITE_COURSE_ID', raising=False)
    fake_db.fetchone_results = [{'id': None, 'enablecompletion': None, 'startdate': None}]
    assert Badge.get_course(8, db=fake_db) == {
        'id': 1,
        'enablecompletion': 0,
        'startdate': 0,
    }


def test_last_issued_none_when_never_issued(fake_db):
    fake_db.fetchone_results = [{'lastissued': None}]
    assert BadgeIssued.last_issued(1, 2, db=fake_db) is None
    query, params = fake_db.queries[0]
    assert 'MAX(dateissued)' in query
    assert params == {'badgeid': 1, 'userid': 2}


def test_models_open_their_own_connection(monkeypatch, fake_db):
    import forumbadges.models.base as base_module

    monkeypatch.setattr(base_module, 'DBManager', lambda: fake_db)
    fake_db.fetchall_results = [[{'userid': 4}, {'userid': 9}]]
    assert BadgeIssued.holders(2) == {4, 9}
