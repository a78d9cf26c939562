import logging
import time
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, Optional

_current_span: ContextVar[Optional['TraceSpan']] = ContextVar(
    'forumbadges_current_span', default=None
)

logger = logging.getLogger(__name__)


@dataclass
class TraceSpan:
    '''Timed section of a badge evaluation pass.'''

    name: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    parent: Optional['TraceSpan'] = None
    started: float = field(default_factory=time.perf_counter)
    ended: Optional[float] = None

    @property
    def depth(self) -> int:
        return 0 if self.parent is None else self.parent.depth + 1

    @property
    def elapsed_ms(self) -> float:
        end = self.ended if self.ended is not None else time.perf_counter()
        return (end - self.started) * 1000

    def record(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def close(self) -> None:
        self.ended = time.perf_counter()
        details = ', '.join(f'{k}={v}' for k, v in self.metadata.items())
        # Nested spans are only interesting when debugging a slow pass
        log = logger.info if self.parent is None else logger.debug
        log(f'{"  " * self.depth}{self.name}: {self.elapsed_ms:.2f}ms [{details}]')


@contextmanager
def trace_span(
    name: str, metadata: Optional[Dict[str, Any]] = None
) -> Iterator[TraceSpan]:
    '''Time a block and log it when it exits.

    Example:
        with trace_span('criteria.review', {'badge_id': 4}) as span:
            span.record('satisfied', True)
    '''
    span = TraceSpan(name=name, metadata=dict(metadata or {}), parent=_current_span.get())
    token = _current_span.set(span)
    try:
        yield span
    finally:
        span.close()
        _current_span.reset(token)
