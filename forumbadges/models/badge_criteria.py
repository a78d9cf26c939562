from typing import Any, Mapping

from forumbadges.models.base import BaseModel, _session


class BadgeCriteria(BaseModel):
    table = 'badge_criteria'

    @classmethod
    def for_badge(cls, badge_id: int, db: Any = None) -> list[dict[str, Any]]:
        return cls.get_many(
            where='badgeid = %(badgeid)s', params={'badgeid': badge_id}, order_by='id', db=db
        )


class BadgeCriteriaParam(BaseModel):
    table = 'badge_criteria_param'

    @classmethod
    def as_dict(cls, crit_id: int, db: Any = None) -> dict[str, str]:
        rows = cls.get_many(
            where='critid = %(critid)s', params={'critid': crit_id}, order_by='id', db=db
        )
        return {r['name']: r['value'] for r in rows}

    @classmethod
    def replace(cls, crit_id: int, values: Mapping[str, Any], db: Any = None) -> None:
        '''Drop every param of a criterion and store `values` instead.'''
        with _session(db) as conn:
            cls.delete_where('critid = %(critid)s', {'critid': crit_id}, db=conn)
            for name, value in values.items():
                cls.create(
                    {'critid': crit_id, 'name': name, 'value': str(value)}, db=conn
                )
