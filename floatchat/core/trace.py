from __future__ import annotations

import uuid
from contextvars import ContextVar


_exchange_id: ContextVar[str | None] = ContextVar("exchange_id", default=None)


def new_exchange_id() -> str:
    eid = uuid.uuid4().hex[:12]
    _exchange_id.set(eid)
    return eid


def set_exchange_id(eid: str | None) -> None:
    _exchange_id.set(eid)


def get_exchange_id() -> str | None:
    return _exchange_id.get()
