import time
from typing import Any, Optional

from forumbadges.models.base import BaseModel, _session


class BadgeIssued(BaseModel):
    table = 'badge_issued'

    @classmethod
    def last_issued(cls, badge_id: int, user_id: int, db: Any = None) -> Optional[int]:
        '''Most recent issue time of a badge to a user, or None if never issued.'''
        with _session(db) as conn:
            row = conn.fetchone(
                'SELECT MAX(dateissued) AS lastissued FROM {badge_issued} '
                'WHERE badgeid = %(badgeid)s AND userid = %(userid)s',
                {'badgeid': badge_id, 'userid': user_id},
            )
        if not row or row['lastissued'] is None:
            return None
        return int(row['lastissued'])

    @classmethod
    def holders(cls, badge_id: int, db: Any = None) -> set[int]:
        with _session(db) as conn:
            rows = conn.fetchall(
                'SELECT DISTINCT userid FROM {badge_issued} WHERE badgeid = %(badgeid)s',
                {'badgeid': badge_id},
            )
        return {int(r['userid']) for r in rows}

    @classmethod
    def issue(
        cls, badge_id: int, user_id: int, when: Optional[int] = None, db: Any = None
    ) -> dict[str, Any]:
        return cls.create(
            {
                'badgeid': badge_id,
                'userid': user_id,
                'dateissued': int(when if when is not None else time.time()),
            },
            db=db,
        )
