from typing import Any

from forumbadges.errors import BadgeCriteriaError
from forumbadges.models.base import BaseModel, _session
from forumbadges.utils.env import get_settings


class Badge(BaseModel):
    table = 'badge'

    @classmethod
    def get_course(cls, badge_id: int, db: Any = None) -> dict[str, Any]:
        '''Course context of a badge; site-level badges use the site course.'''
        with _session(db) as conn:
            row = conn.fetchone(
                'SELECT c.id, c.enablecompletion, c.startdate '
                'FROM {badge} b LEFT JOIN {course} c ON b.courseid = c.id '
                'WHERE b.id = %(badgeid)s',
                {'badgeid': badge_id},
            )
            if row is None:
                raise BadgeCriteriaError(f'No badge with id {badge_id}')
            if row['id'] is not None:
                return dict(row)

            site_id = get_settings().site_course_id
            site = conn.fetchone(
                'SELECT id, enablecompletion, startdate FROM {course} '
                'WHERE id = %(id)s',
                {'id': site_id},
            )
        return dict(site) if site else {'id': site_id, 'enablecompletion': 0, 'startdate': 0}
