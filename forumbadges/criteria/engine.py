from __future__ import annotations

import logging
from contextlib import ExitStack
from typing import Any, Optional

from forumbadges.criteria.loader import load_criteria
from forumbadges.models.badge_issued import BadgeIssued
from forumbadges.utils.tracing import trace_span

logger = logging.getLogger(__name__)


class BadgeReviewEngine:
    '''Issues a badge to every user meeting all of its criteria.'''

    def __init__(self, db: Any) -> None:
        self.db = db

    def review_badge(self, badge_id: int, now: Optional[int] = None) -> list[int]:
        criteria = load_criteria(badge_id, self.db)
        if not criteria:
            logger.info(f'Badge {badge_id} has no criteria; nothing to review')
            return []

        with ExitStack() as passes, trace_span(
            'badges.review', {'badge_id': badge_id}
        ) as span:
            for criterion in criteria:
                passes.enter_context(criterion.evaluation_pass())

            with trace_span('badges.candidates', {'criteria': len(criteria)}):
                filters = [c.get_completed_criteria_sql() for c in criteria]
                params: dict[str, Any] = {}
                for f in filters:
                    params.update(f.params)
                rows = self.db.fetchall(
                    'SELECT u.id FROM {user} u'
                    + ''.join(f.join for f in filters)
                    + ' WHERE u.deleted = 0'
                    + ''.join(f.where for f in filters)
                    + ' ORDER BY u.id',
                    params,
                )

            # Refresh mode credits only new activity, so holders may earn it again
            reissue = any(getattr(c, 'refreshes', False) for c in criteria)
            holders = set() if reissue else BadgeIssued.holders(badge_id, db=self.db)

            issued: list[int] = []
            for row in rows:
                user_id = int(row['id'])
                if user_id in holders:
                    continue
                if all(c.review(user_id, filtered=True) for c in criteria):
                    BadgeIssued.issue(badge_id, user_id, when=now, db=self.db)
                    issued.append(user_id)

            span.record('candidates', len(rows))
            span.record('issued', len(issued))
            if issued:
                logger.info(f'Badge {badge_id} issued to {len(issued)} user(s)')
            return issued

    def check_user(self, badge_id: int, user_id: int) -> Optional[bool]:
        '''Whether a user meets every criterion; None when there are none.'''
        criteria = load_criteria(badge_id, self.db)
        if not criteria:
            return None
        return all(c.review(user_id) for c in criteria)
