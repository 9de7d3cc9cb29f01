from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from types import MappingProxyType

CORRELATION_FIELDS = ("run_id", "tick_id", "channel", "action")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_log_context: ContextVar[Mapping[str, str]] = ContextVar("basedintern_log_context", default=_EMPTY)


def current_log_context() -> dict[str, str]:
    return dict(_log_context.get())


@contextmanager
def bind_log_context(**fields: str | None) -> Iterator[None]:
    """Layer correlation fields over the enclosing ones for the duration of the block.

    ``None`` leaves the enclosing value in place. Unknown field names are a programming
    error and raise ``ValueError``.
    """
    unknown = sorted(set(fields) - set(CORRELATION_FIELDS))
    if unknown:
        raise ValueError(f"unknown log context fields: {', '.join(unknown)}")
    merged = dict(_log_context.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    token = _log_context.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _log_context.reset(token)


@contextmanager
def tick_scope(run_id: str, tick_id: str) -> Iterator[None]:
    with bind_log_context(run_id=run_id, tick_id=tick_id):
        yield
