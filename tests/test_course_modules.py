import pytest

from forumbadges.errors import CourseModuleNotFoundError, InvalidPluginStateError
from forumbadges.services.course_modules import (
    get_course_and_cm_from_cmid,
    get_mod_instance,
    get_rated_forums,
    require_module_installed,
)


def test_rated_forums_filters_on_assessed(lms, sqlite_db):
    course = lms.course()
    average, _ = lms.forum(course, 'Average', assessed=1)
    count, _ = lms.forum(course, 'Count', assessed=2)
    summed, _ = lms.forum(course, 'Sum', assessed=5)
    lms.forum(lms.course(), 'Elsewhere', assessed=2)

    rated = get_rated_forums(sqlite_db, course)

    assert list(rated) == [count, summed]
    assert rated[count]['name'] == 'Count'
    assert average not in rated


def test_course_and_cm_lookup(lms, sqlite_db):
    course = lms.course(startdate=42)
    cmid, forum = lms.forum(course, 'Help')

    found_course, cm = get_course_and_cm_from_cmid(sqlite_db, cmid)

    assert found_course['startdate'] == 42
    assert cm['instance'] == forum
    assert get_mod_instance(sqlite_db, cmid)['name'] == 'Help'


def test_missing_course_module(lms, sqlite_db):
    with pytest.raises(CourseModuleNotFoundError) as excinfo:
        get_course_and_cm_from_cmid(sqlite_db, 404)
    assert excinfo.value.cmid == 404
    assert get_mod_instance(sqlite_db, 404) is None


def test_module_must_be_installed_and_visible(lms, sqlite_db):
    assert require_module_installed(sqlite_db, 'forum')['name'] == 'forum'
    with pytest.raises(InvalidPluginStateError):
        require_module_installed(sqlite_db, 'quiz')
    sqlite_db.execute("UPDATE {modules} SET visible = 0 WHERE name = 'forum'")
    with pytest.raises(InvalidPluginStateError):
        require_module_installed(sqlite_db, 'forum')
