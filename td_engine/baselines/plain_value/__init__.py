from __future__ import annotations

from .core import PlainValueFunction
from .plain_value import plain_value

__all__ = [
    "plain_value",
    "PlainValueFunction",
]
