from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from html import escape
from typing import Any, Callable, Iterator, Mapping, Optional

from forumbadges.criteria.interface import CompletedCriteriaSQL
from forumbadges.criteria.query import (
    ActivityWindow,
    SocialType,
    build_social_query,
    forum_posters_query,
)
from forumbadges.criteria.registry import registry
from forumbadges.database.db_manager import in_or_equal
from forumbadges.errors import CourseModuleNotFoundError, InvalidCriteriaParamsError
from forumbadges.forms.builder import PARAM_INT, FormBuilder
from forumbadges.models.badge import Badge
from forumbadges.models.badge_criteria import BadgeCriteria, BadgeCriteriaParam
from forumbadges.models.badge_issued import BadgeIssued
from forumbadges.services.course_modules import (
    get_course_and_cm_from_cmid,
    get_coursemodules_in_course,
    get_mod_instance,
    get_rated_forums,
    require_module_installed,
)
from forumbadges.utils import htmlwriter
from forumbadges.utils.constants import CRITERIA_TYPE_SOCIAL, FORUM_MODNAME
from forumbadges.utils.dates import format_date, to_timestamp
from forumbadges.utils.lang import get_string
from forumbadges.utils.tracing import trace_span

logger = logging.getLogger(__name__)


def _flag(value: Any) -> bool:
    return str(value).strip().lower() in {'1', 'true', 'on', 'yes'}


def _int_or_none(value: Any) -> Optional[int]:
    if value is None or str(value).strip() == '':
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidCriteriaParamsError(f'Expected a number, got {value!r}') from None


@dataclass(frozen=True)
class SocialParams:
    '''Parsed params of a social participation criterion.'''

    forum: Optional[int]
    allforums: bool
    socialtype: SocialType
    socialvalue: int
    bydate: Optional[int] = None
    refresh: bool = False

    @classmethod
    def parse(cls, values: Mapping[str, Any]) -> 'SocialParams':
        '''Build from stored param rows or a form submission (`name_1` keys).'''
        allforums = _flag(values.get('allforums_1'))
        forum = None if allforums else _int_or_none(values.get('forum_1'))
        if not allforums and forum is None:
            raise InvalidCriteriaParamsError('Pick a forum or enable all forums')

        socialvalue = _int_or_none(values.get('socialvalue_1'))
        if socialvalue is None or socialvalue < 0:
            raise InvalidCriteriaParamsError('Threshold must be a whole number >= 0')

        return cls(
            forum=forum,
            allforums=allforums,
            socialtype=SocialType.parse(
                values.get('socialtype_1') or SocialType.SINGLE_POST_LIKES
            ),
            socialvalue=socialvalue,
            bydate=to_timestamp(values.get('bydate_1')),
            refresh=_flag(values.get('refresh_1')),
        )

    def to_stored(self) -> dict[str, str]:
        stored = {
            'module_1': '1',
            'socialtype_1': str(int(self.socialtype)),
            'socialvalue_1': str(self.socialvalue),
        }
        if self.allforums:
            stored['allforums_1'] = '1'
        else:
            stored['forum_1'] = str(self.forum)
        if self.bydate is not None:
            stored['bydate_1'] = str(self.bydate)
        if self.refresh:
            stored['refresh_1'] = '1'
        return stored


@registry.register
class SocialCriterion:
    '''Badge criterion on forum participation: likes, rated posts or replies.

    Reads go through the executor given to the constructor; the criterion
    never writes outside `save`.
    '''

    criteriatype = CRITERIA_TYPE_SOCIAL
    required_param = 'module'
    optional_params = ('forum', 'allforums', 'socialtype', 'socialvalue', 'bydate', 'refresh')

    def __init__(
        self,
        record: Mapping[str, Any],
        db: Any,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db = db
        self.clock = clock
        self.id = int(record.get('id') or 0)
        self.badgeid = int(record['badgeid'])
        self.method = int(record.get('method') or 1)
        stored = record.get('params') or {}
        self.params: Optional[SocialParams] = SocialParams.parse(stored) if stored else None
        self.course = Badge.get_course(self.badgeid, db=db)
        self.courseid = int(self.course['id'])
        # Users found by the batch path during the open evaluation pass, with
        # the last issue time their check was made against
        self._completed: Optional[dict[int, Optional[int]]] = None
        self._pass_open = False

    @property
    def refreshes(self) -> bool:
        return bool(self.params and self.params.refresh)

    def get_title(self) -> str:
        return get_string(f'criteria_{self.criteriatype}')

    # -- configuration ----------------------------------------------------

    def get_options(self, form: FormBuilder) -> tuple[bool, str]:
        '''Add this criterion's controls to `form`.

        Returns (has_options, error_message); the message only matters when
        no usable options were rendered.
        '''
        require_module_installed(self.db, FORUM_MODNAME)
        forums = get_coursemodules_in_course(self.db, FORUM_MODNAME, self.courseid)
        params = self.params

        rated = get_rated_forums(self.db, self.courseid)
        stored = params.forum if self.id and params and not params.allforums else None
        problem = None
        if stored is not None and stored not in forums:
            problem = 'error:nosuchmod'
        elif stored is not None and stored not in rated:
            problem = 'error:notrated'
        if problem:
            form.add_element('header', 'category_errors', get_string('criterror'))
            form.add_help_button('category_errors', 'criterror', 'badges')
            self.config_options(
                form, {'id': 1, 'name': get_string(problem), 'error': True}
            )

        if not forums:
            return False, get_string('error:noforums')

        forumoptions = {cmid: cm['name'] for cmid, cm in rated.items()}
        if not forumoptions:
            form.add_element('header', 'category_errors', get_string('criterror'))
            form.add_help_button('category_errors', 'criterror', 'badges')
            return False, get_string('error:noactivities')

        form.add_element('header', 'first_header', self.get_title())
        option: dict[str, Any] = {
            'id': self.id,
            'error': False,
            'forumoptions': forumoptions,
            'socialtype': int(SocialType.SINGLE_POST_LIKES),
        }
        if self.id and params:
            option.update(
                allforums=params.allforums,
                socialtype=int(params.socialtype),
                socialvalue=params.socialvalue,
                bydate=params.bydate,
                refresh=params.refresh,
            )
            if stored in forums:
                # An unrated forum stays selectable so editing keeps the choice
                forumoptions.setdefault(stored, forums[stored]['name'])
                option['forum'] = stored
        self.config_options(form, option)
        return True, get_string('error:noforums')

    def config_options(self, form: FormBuilder, param: Mapping[str, Any]) -> None:
        prefix = f'{self.required_param}_'
        group = f'param_{prefix}1'

        if param['error']:
            placeholder = form.create_element(
                'advcheckbox', f'{prefix}1', '', text=htmlwriter.error_text(param['name'])
            )
            form.add_group([placeholder], group, '')
        else:
            types = {int(t): get_string(t.string_key) for t in SocialType}
            elements = [
                form.create_element('hidden', f'{prefix}1', value=1),
                form.create_element(
                    'advcheckbox', 'allforums_1', get_string('allforums')
                ),
                form.create_element(
                    'select',
                    'forum_1',
                    get_string('forum', FORUM_MODNAME),
                    options=param['forumoptions'],
                ),
                form.create_element(
                    'select', 'socialtype_1', get_string('socialtype'), options=types
                ),
                form.create_element('text', 'socialvalue_1', get_string('socialvalue')),
                form.create_element('static', 'complby_1', None, text=get_string('bydate')),
                form.create_element('date_selector', 'bydate_1', '', optional=True),
                form.create_element('advcheckbox', 'refresh_1', get_string('refresh')),
            ]
            form.add_group(elements, group, get_string('socialbadgecriteria'))
            form.add_help_button(group, 'socialbadgecriteria', 'badges')
            form.set_type('socialvalue_1', PARAM_INT)
            form.add_group_rule(
                group,
                {
                    'socialvalue_1': [
                        (get_string('err_numeric', 'form'), 'required', None, 'client')
                    ]
                },
            )
            form.hide_if('forum_1', 'allforums_1', 'checked')
            for part in ('day', 'month', 'year'):
                form.disabled_if(f'bydate_1[{part}]', 'bydate_1[enabled]', 'notchecked')
            form.set_default('socialtype_1', param['socialtype'])

        form.set_default(f'{prefix}1', 1)
        for name in ('forum', 'allforums', 'socialvalue', 'bydate', 'refresh'):
            if param.get(name) is not None:
                form.set_default(f'{name}_1', param[name])

    def save(self, form_data: Mapping[str, Any]) -> None:
        '''Store a submitted configuration, replacing any previous params.'''
        params = SocialParams.parse(form_data)
        if not self.id:
            row = BadgeCriteria.create(
                {
                    'badgeid': self.badgeid,
                    'criteriatype': self.criteriatype,
                    'method': self.method,
                },
                db=self.db,
            )
            self.id = int(row['id'])
        BadgeCriteriaParam.replace(self.id, params.to_stored(), db=self.db)
        self.params = params
        self._completed = None
        logger.info(f'Saved social criterion {self.id} for badge {self.badgeid}')

    # -- description ------------------------------------------------------

    def _forum_label(self, name: str) -> str:
        return htmlwriter.tag('b', escape(f'"{get_string("modulename", FORUM_MODNAME)} - {name}"'))

    def get_details(self, short: bool = False) -> str:
        params = self.params
        if params is None:
            return ''

        if params.allforums:
            labels = [
                self._forum_label(cm['name'])
                for cm in get_rated_forums(self.db, self.courseid).values()
            ]
            if not labels:
                forums = htmlwriter.error_text(get_string('error:noactivities'))
            else:
                forums = ', '.join(labels) if short else htmlwriter.alist(labels)
        else:
            mod = get_mod_instance(self.db, params.forum)
            if not mod:
                item = htmlwriter.error_text(get_string('error:nosuchmod'))
                return item if short else htmlwriter.alist([item])
            forums = self._forum_label(mod['name'])

        phrase = escape(get_string(params.socialtype.string_key, a=params.socialvalue))
        text = forums + (f' {phrase}' if short else htmlwriter.tag('p', phrase))
        if params.refresh:
            text += get_string('criteria_descr_refresh')
        if params.bydate is not None:
            text += get_string('criteria_descr_bydate', a=format_date(params.bydate))

        return text if short else htmlwriter.alist([text])

    # -- evaluation -------------------------------------------------------

    def _started(self) -> bool:
        return int(self.course['startdate'] or 0) <= self.clock()

    def _target_forums(self) -> list[int]:
        '''Forum instance ids the criterion counts activity in.'''
        params = self.params
        assert params is not None
        require_module_installed(self.db, FORUM_MODNAME)
        if params.allforums:
            return sorted(
                int(cm['instance'])
                for cm in get_rated_forums(self.db, self.courseid).values()
            )
        try:
            _, cm = get_course_and_cm_from_cmid(self.db, params.forum, FORUM_MODNAME)
        except CourseModuleNotFoundError as e:
            logger.warning(f'Social criterion {self.id}: {e}')
            return []
        return [int(cm['instance'])]

    def _window(self, user_id: int) -> ActivityWindow:
        params = self.params
        assert params is not None
        after = (
            BadgeIssued.last_issued(self.badgeid, user_id, db=self.db)
            if params.refresh
            else None
        )
        return ActivityWindow(after=after, before=params.bydate)

    def _user_matches(
        self, user_id: int, forum_ids: list[int], window: ActivityWindow
    ) -> bool:
        params = self.params
        assert params is not None
        query = build_social_query(
            params.socialtype, user_id, forum_ids, params.socialvalue, window
        )
        return bool(self.db.fetchall(query.sql(), query.params))

    def _known_qualifier(self, user_id: int) -> bool:
        '''Whether the open pass already found this user and still holds.'''
        if self._completed is None or user_id not in self._completed:
            return False
        assert self.params is not None
        if not self.params.refresh:
            return True
        # Re-issuing moves the refresh window, so the batch answer is stale
        current = BadgeIssued.last_issued(self.badgeid, user_id, db=self.db)
        return current == self._completed[user_id]

    @contextmanager
    def evaluation_pass(self) -> Iterator['SocialCriterion']:
        '''Scope in which batch results back `review(..., filtered=True)`.'''
        self._completed = None
        self._pass_open = True
        try:
            yield self
        finally:
            self._pass_open = False
            self._completed = None

    def review(self, user_id: int, filtered: bool = False) -> bool:
        '''Whether the user's forum activity meets the configured threshold.'''
        with trace_span(
            'criteria.social.review', {'criterion': self.id, 'user_id': user_id}
        ) as span:
            if self.params is None or not self._started():
                return False
            if filtered and self._known_qualifier(user_id):
                span.record('skipped', True)
                return True
            forum_ids = self._target_forums()
            if not forum_ids:
                return False
            satisfied = self._user_matches(user_id, forum_ids, self._window(user_id))
            span.record('satisfied', satisfied)
            return satisfied

    def get_completed_criteria_sql(self) -> CompletedCriteriaSQL:
        '''Filter for a `{user} u` listing: every user meeting this criterion.

        Candidates are everyone who posted in the target forums; each is run
        through the same check as `review`. Inside `evaluation_pass` the
        result also backs later filtered reviews.
        '''
        with trace_span('criteria.social.completed', {'criterion': self.id}) as span:
            self._completed = None
            if self.params is None or not self._started():
                return CompletedCriteriaSQL()
            forum_ids = self._target_forums()
            if not forum_ids:
                return CompletedCriteriaSQL()

            candidates = forum_posters_query(forum_ids)
            user_ids = sorted(
                int(r['userid']) for r in self.db.fetchall(candidates.sql(), candidates.params)
            )
            satisfied: dict[int, Optional[int]] = {}
            for user_id in user_ids:
                window = self._window(user_id)
                if self._user_matches(user_id, forum_ids, window):
                    satisfied[user_id] = window.after
            span.record('candidates', len(user_ids))
            span.record('satisfied', len(satisfied))
            if self._pass_open:
                self._completed = satisfied
            if not satisfied:
                return CompletedCriteriaSQL()

            fragment, params = in_or_equal(sorted(satisfied), f'social{self.id}_')
            return CompletedCriteriaSQL(
                join='',
                where=f' AND u.id {fragment}',
                params=params,
                user_ids=frozenset(satisfied),
            )
