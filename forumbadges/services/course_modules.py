'''Course and course-module lookups against the LMS tables.

All functions take the query executor as their first argument.
'''

import logging
import re
from typing import Any, Optional

from forumbadges.errors import CourseModuleNotFoundError, InvalidPluginStateError
from forumbadges.utils.constants import FORUM_MODNAME, RATED_FORUM_MODES

logger = logging.getLogger(__name__)

_MODNAME_RE = re.compile(r'^[a-z][a-z0-9_]*$')


def _instance_table(modname: str) -> str:
    if not _MODNAME_RE.match(modname):
        raise ValueError(f'Invalid module name: {modname!r}')
    return '{' + modname + '}'


def require_module_installed(db: Any, modname: str) -> dict[str, Any]:
    row = db.fetchone(
        'SELECT id, name, visible FROM {modules} WHERE name = %(modname)s',
        {'modname': modname},
    )
    if row is None or not row['visible']:
        raise InvalidPluginStateError(modname)
    return row


def get_coursemodule_from_id(
    db: Any, modname: str, cmid: int
) -> Optional[dict[str, Any]]:
    '''Course module joined with its instance row, or None.'''
    return db.fetchone(
        'SELECT cm.id, cm.course, cm.instance, cm.visible, cm.timemodified, '
        'md.name AS modname, m.name '
        'FROM {course_modules} cm '
        'JOIN {modules} md ON md.id = cm.module '
        f'JOIN {_instance_table(modname)} m ON m.id = cm.instance '
        'WHERE cm.id = %(cmid)s AND md.name = %(modname)s',
        {'cmid': cmid, 'modname': modname},
    )


def get_mod_instance(db: Any, cmid: int) -> Optional[dict[str, Any]]:
    '''Resolve a course module of any type by id; None if it is gone.'''
    rec = db.fetchone(
        'SELECT md.name FROM {course_modules} cm '
        'JOIN {modules} md ON md.id = cm.module '
        'WHERE cm.id = %(cmid)s',
        {'cmid': cmid},
    )
    if rec is None:
        return None
    return get_coursemodule_from_id(db, rec['name'], cmid)


def get_course_and_cm_from_cmid(
    db: Any, cmid: int, modname: str = FORUM_MODNAME
) -> tuple[dict[str, Any], dict[str, Any]]:
    require_module_installed(db, modname)
    cm = get_coursemodule_from_id(db, modname, cmid)
    if cm is None:
        raise CourseModuleNotFoundError(cmid, modname)
    course = db.fetchone(
        'SELECT id, enablecompletion, startdate FROM {course} WHERE id = %(id)s',
        {'id': cm['course']},
    )
    if course is None:
        raise CourseModuleNotFoundError(cmid, modname)
    return course, cm


def get_coursemodules_in_course(
    db: Any, modname: str, course_id: int
) -> dict[int, dict[str, Any]]:
    '''All course modules of one type in a course, keyed by course module id.'''
    rows = db.fetchall(
        'SELECT cm.id, cm.course, cm.instance, cm.visible, '
        'md.name AS modname, m.name, m.assessed '
        'FROM {course_modules} cm '
        'JOIN {modules} md ON md.id = cm.module '
        f'JOIN {_instance_table(modname)} m ON m.id = cm.instance '
        'WHERE cm.course = %(course)s AND md.name = %(modname)s '
        'ORDER BY cm.id',
        {'course': course_id, 'modname': modname},
    )
    return {int(r['id']): r for r in rows}


def get_rated_forums(db: Any, course_id: int) -> dict[int, dict[str, Any]]:
    '''Forums in a course with ratings enabled, keyed by course module id.'''
    forums = get_coursemodules_in_course(db, FORUM_MODNAME, course_id)
    return {
        cmid: cm for cmid, cm in forums.items() if cm['assessed'] in RATED_FORUM_MODES
    }
