from __future__ import annotations

from typing import Iterable, Optional, TypeVar

T = TypeVar('T', bound=type)


class CriteriaRegistry:
    '''Criterion classes keyed by their criteria type id.'''

    def __init__(self) -> None:
        self._types: dict[int, type] = {}

    def register(self, criterion_cls: T) -> T:
        # First registration of a type wins
        self._types.setdefault(int(criterion_cls.criteriatype), criterion_cls)
        return criterion_cls

    def get(self, criteriatype: int) -> Optional[type]:
        return self._types.get(int(criteriatype))

    def all(self) -> Iterable[type]:
        return list(self._types.values())


registry = CriteriaRegistry()
