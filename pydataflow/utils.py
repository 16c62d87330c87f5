import os
from typing import Optional


def first(iterable, default=None):
    for item in iterable:
        return item
    return default


def first_where(iterable, pred, default=None):
    return first((x for x in iterable if pred(x)), default=default)


def env_int(name: str) -> Optional[int]:
    val = os.getenv(name)
    if not val:
        return None
    return int(val, 0)
