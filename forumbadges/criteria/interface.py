from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ContextManager, Mapping, Protocol, runtime_checkable

from forumbadges.forms.builder import FormBuilder

# Matches nobody; used when a criterion has no qualifying users
NO_USERS_WHERE = ' AND 1 = 0'


@dataclass(frozen=True)
class CompletedCriteriaSQL:
    '''Fragment narrowing a `{user} u` listing to users meeting a criterion.'''

    join: str = ''
    where: str = NO_USERS_WHERE
    params: Mapping[str, Any] = field(default_factory=dict)
    user_ids: frozenset[int] = frozenset()


@runtime_checkable
class AwardCriterion(Protocol):
    criteriatype: int
    id: int
    badgeid: int

    def get_title(self) -> str:
        pass

    def get_options(self, form: FormBuilder) -> tuple[bool, str]:
        pass

    def get_details(self, short: bool = False) -> str:
        pass

    def review(self, user_id: int, filtered: bool = False) -> bool:
        '''
        Return whether the user meets this criterion. `filtered` tells the
        criterion the user list was already narrowed by
        `get_completed_criteria_sql` inside the open `evaluation_pass`; it may
        skip work but never change the answer.
        '''
        pass

    def get_completed_criteria_sql(self) -> CompletedCriteriaSQL:
        pass

    def evaluation_pass(self) -> ContextManager[Any]:
        '''Scope in which batch results may back filtered reviews.'''
        pass

    def save(self, form_data: Mapping[str, Any]) -> None:
        pass
