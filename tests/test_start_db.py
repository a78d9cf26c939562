from forumbadges.database import start_db


def _write_migration(directory, name, body='def up(db):\n    db.execute("SELECT 1")\n'):
    (directory / name).write_text(body)


def test_pending_migrations_skips_applied(tmp_path, fake_db):
    _write_migration(tmp_path, '20260101_000000_first.py')
    _write_migration(tmp_path, '20260102_000000_second.py')
    (tmp_path / 'notes.txt').write_text('ignored')
    fake_db.fetchall_results = [[{'filename': '20260101_000000_first.py'}]]

    assert start_db.pending_migrations(fake_db, str(tmp_path)) == [
        '20260102_000000_second.py'
    ]


def test_run_applies_and_records_migrations(monkeypatch, tmp_path, fake_db):
    monkeypatch.setattr(start_db, 'init_schema', lambda db: None)
    _write_migration(tmp_path, '20260101_000000_first.py')

    start_db.run(fake_db, str(tmp_path))

    assert fake_db.executed == [
        ('SELECT 1', None),
        (
            'INSERT INTO {migrations} (filename) VALUES (%(filename)s)',
            {'filename': '20260101_000000_first.py'},
        ),
    ]


def test_missing_migrations_dir(tmp_path, fake_db):
    assert start_db.pending_migrations(fake_db, str(tmp_path / 'missing')) == []
