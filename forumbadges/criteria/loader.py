from __future__ import annotations

import logging
from typing import Any

import forumbadges.criteria.social  # noqa: F401 ensure criteria register
from forumbadges.criteria.interface import AwardCriterion
from forumbadges.criteria.registry import registry
from forumbadges.models.badge_criteria import BadgeCriteria, BadgeCriteriaParam

logger = logging.getLogger(__name__)


def load_criteria(badge_id: int, db: Any) -> list[AwardCriterion]:
    '''Instantiate every stored criterion of a badge.'''
    criteria: list[AwardCriterion] = []
    for row in BadgeCriteria.for_badge(badge_id, db=db):
        criterion_cls = registry.get(row['criteriatype'])
        if criterion_cls is None:
            logger.warning(
                f'Badge {badge_id}: no criterion registered for type '
                f'{row["criteriatype"]} (criteria id {row["id"]})'
            )
            continue
        record = {
            'id': row['id'],
            'badgeid': badge_id,
            'method': row.get('method'),
            'params': BadgeCriteriaParam.as_dict(row['id'], db=db),
        }
        criteria.append(criterion_cls(record, db=db))
    return criteria
