'''Query definitions for the social participation metrics.

Each metric type has one shape that turns a target forum set, a user and a
threshold into a `SocialQuery`. Queries are checked when they are built, so
a malformed query fails before anything reaches the database.
'''

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import IntEnum
from typing import Any, ClassVar, Mapping, Optional, Sequence

from forumbadges.database.db_manager import in_or_equal
from forumbadges.errors import InvalidCriteriaParamsError
from forumbadges.utils.constants import RATING_AREA, RATING_COMPONENT

_PLACEHOLDER_RE = re.compile(r'%\((\w+)\)s')


class SocialType(IntEnum):
    SINGLE_POST_LIKES = 1
    TOTAL_LIKES = 2
    TOTAL_POSTS = 3
    TOTAL_REPLIES = 4

    @property
    def string_key(self) -> str:
        return self.name.lower().replace('_', '')

    @classmethod
    def parse(cls, value: Any) -> 'SocialType':
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            raise InvalidCriteriaParamsError(f'Unknown social type: {value!r}') from None


@dataclass(frozen=True)
class ActivityWindow:
    '''Exclusive bounds (unix seconds) on when counted activity happened.'''

    after: Optional[int] = None
    before: Optional[int] = None


@dataclass(frozen=True)
class SocialQuery:
    selects: tuple[str, ...]
    tables: tuple[str, ...]
    wheres: tuple[str, ...] = ()
    group_by: tuple[str, ...] = ()
    having: Optional[str] = None
    params: Mapping[str, Any] = field(default_factory=dict)
    distinct: bool = False

    def __post_init__(self) -> None:
        if not self.selects:
            raise InvalidCriteriaParamsError('A query needs at least one column')
        if not self.tables or not self.tables[0].startswith('{'):
            raise InvalidCriteriaParamsError('A query must start from a table')
        if self.having and not self.group_by:
            raise InvalidCriteriaParamsError('HAVING requires GROUP BY')
        missing = set(_PLACEHOLDER_RE.findall(self.sql())) - set(self.params)
        if missing:
            raise InvalidCriteriaParamsError(
                f'Query references unbound params: {", ".join(sorted(missing))}'
            )

    def where(self, clause: str, **params: Any) -> 'SocialQuery':
        return replace(
            self, wheres=(*self.wheres, clause), params={**self.params, **params}
        )

    def sql(self) -> str:
        parts = [
            f'SELECT {"DISTINCT " if self.distinct else ""}{", ".join(self.selects)}',
            'FROM ' + ' '.join(self.tables),
        ]
        if self.wheres:
            parts.append('WHERE ' + ' AND '.join(self.wheres))
        if self.group_by:
            parts.append('GROUP BY ' + ', '.join(self.group_by))
        if self.having:
            parts.append(f'HAVING {self.having}')
        return '\n'.join(parts)


def _forum_filter(forum_ids: Sequence[int]) -> tuple[str, dict[str, Any]]:
    if not forum_ids:
        raise InvalidCriteriaParamsError('No target forums to query')
    fragment, params = in_or_equal(forum_ids, 'forum')
    return f'd.forum {fragment}', params


class MetricShape:
    '''Aggregation for one social type.'''

    type: ClassVar[SocialType]
    selects: ClassVar[tuple[str, ...]]
    group_by: ClassVar[tuple[str, ...]]
    having: ClassVar[str]

    def base(self, user_id: int, forum_ids: Sequence[int], threshold: int) -> SocialQuery:
        forum_where, forum_params = _forum_filter(forum_ids)
        return SocialQuery(
            selects=self.selects,
            tables=(
                '{forum_discussions} d',
                'JOIN {forum_posts} p ON p.discussion = d.id',
                'JOIN {rating} r ON r.itemid = p.id '
                'AND r.component = %(component)s AND r.ratingarea = %(ratingarea)s',
            ),
            wheres=('p.userid = %(userid)s', forum_where),
            group_by=self.group_by,
            having=self.having,
            params={
                'userid': user_id,
                'component': RATING_COMPONENT,
                'ratingarea': RATING_AREA,
                'socialvalue': threshold,
                **forum_params,
            },
        )

    def restrict(self, query: SocialQuery, window: ActivityWindow) -> SocialQuery:
        if window.after is not None:
            query = query.where(
                'p.created > %(after)s AND r.timecreated > %(after)s', after=window.after
            )
        if window.before is not None:
            query = query.where(
                'p.created < %(before)s AND r.timecreated < %(before)s',
                before=window.before,
            )
        return query

    def build(
        self,
        user_id: int,
        forum_ids: Sequence[int],
        threshold: int,
        window: ActivityWindow = ActivityWindow(),
    ) -> SocialQuery:
        if threshold < 0:
            raise InvalidCriteriaParamsError(f'Threshold must be >= 0, got {threshold}')
        return self.restrict(self.base(user_id, forum_ids, threshold), window)


class SinglePostLikes(MetricShape):
    type = SocialType.SINGLE_POST_LIKES
    selects = ('p.id', 'COUNT(r.id) AS ratingcount')
    group_by = ('p.id',)
    having = 'COUNT(r.id) >= %(socialvalue)s'


class TotalLikes(MetricShape):
    type = SocialType.TOTAL_LIKES
    selects = ('d.forum', 'COUNT(r.id) AS ratingcount')
    group_by = ('d.forum',)
    having = 'COUNT(r.id) >= %(socialvalue)s'


class TotalPosts(MetricShape):
    type = SocialType.TOTAL_POSTS
    selects = ('d.forum', 'COUNT(DISTINCT p.id) AS postcount')
    group_by = ('d.forum',)
    having = 'COUNT(DISTINCT p.id) > %(socialvalue)s'


class TotalReplies(MetricShape):
    '''Distinct other users replying to any of the user's posts.

    Replies are the counted activity, so the window applies to them.
    '''

    type = SocialType.TOTAL_REPLIES
    selects = ('p.userid', 'COUNT(DISTINCT reply.userid) AS replycount')
    group_by = ('p.userid',)
    having = 'COUNT(DISTINCT reply.userid) > %(socialvalue)s'

    def base(self, user_id: int, forum_ids: Sequence[int], threshold: int) -> SocialQuery:
        forum_where, forum_params = _forum_filter(forum_ids)
        return SocialQuery(
            selects=self.selects,
            tables=(
                '{forum_discussions} d',
                'JOIN {forum_posts} p ON p.discussion = d.id',
                'JOIN {forum_posts} reply ON reply.parent = p.id',
            ),
            wheres=(
                'p.userid = %(userid)s',
                forum_where,
                'reply.userid <> %(userid)s',
            ),
            group_by=self.group_by,
            having=self.having,
            params={'userid': user_id, 'socialvalue': threshold, **forum_params},
        )

    def restrict(self, query: SocialQuery, window: ActivityWindow) -> SocialQuery:
        if window.after is not None:
            query = query.where('reply.created > %(after)s', after=window.after)
        if window.before is not None:
            query = query.where('reply.created < %(before)s', before=window.before)
        return query


SHAPES: dict[SocialType, MetricShape] = {
    shape.type: shape
    for shape in (SinglePostLikes(), TotalLikes(), TotalPosts(), TotalReplies())
}


def build_social_query(
    socialtype: SocialType,
    user_id: int,
    forum_ids: Sequence[int],
    threshold: int,
    window: ActivityWindow = ActivityWindow(),
) -> SocialQuery:
    return SHAPES[socialtype].build(user_id, forum_ids, threshold, window)


def forum_posters_query(forum_ids: Sequence[int]) -> SocialQuery:
    '''Everyone who has posted in the target forums.'''
    forum_where, forum_params = _forum_filter(forum_ids)
    return SocialQuery(
        selects=('p.userid',),
        tables=(
            '{forum_posts} p',
            'JOIN {forum_discussions} d ON d.id = p.discussion',
        ),
        wheres=(forum_where,),
        params=forum_params,
        distinct=True,
    )
