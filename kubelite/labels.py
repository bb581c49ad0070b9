"""Construction of Kubernetes label selectors."""

from __future__ import annotations

import re
from typing import Any

_QNAME_CHAR = "[A-Za-z0-9]"
_QNAME_EXT_CHAR = "[-A-Za-z0-9_./]"
_QUALIFIED_NAME = f"({_QNAME_CHAR}{_QNAME_EXT_CHAR}*)?{_QNAME_CHAR}"
_LABEL_VALUE = re.compile(f"({_QUALIFIED_NAME})?")
QUALIFIED_NAME_MAX_LENGTH = 63


def valid_label_value(value: str) -> bool:
    """Report whether a string is usable as a label key or value."""
    if not value or len(value) > QUALIFIED_NAME_MAX_LENGTH:
        return False
    return _LABEL_VALUE.fullmatch(value) is not None


class LabelSelector:
    """A label selector; statements with invalid keys or values are dropped.

    >>> selector = LabelSelector()
    >>> selector.eq("component", "frontend")
    >>> selector.in_("type", "prod", "staging")
    >>> str(selector)
    'component=frontend,type in (prod, staging)'
    """

    def __init__(self) -> None:
        self._statements: list[str] = []

    def __str__(self) -> str:
        return ",".join(self._statements)

    def __repr__(self) -> str:
        return f"LabelSelector({str(self)!r})"

    def selector(self) -> Any:
        """Return an option that sets the labelSelector query parameter."""
        from .resource import query_param

        return query_param("labelSelector", str(self))

    def eq(self, key: str, val: str) -> None:
        """Select objects whose label key has the given value."""
        if valid_label_value(key) and valid_label_value(val):
            self._statements.append(f"{key}={val}")

    def not_eq(self, key: str, val: str) -> None:
        """Select objects whose label key is present with a different value."""
        if valid_label_value(key) and valid_label_value(val):
            self._statements.append(f"{key}!={val}")

    def in_(self, key: str, *args: str) -> None:
        """Select objects whose label key has one of the given values."""
        if self._valid_set(key, args):
            self._statements.append(f"{key} in ({', '.join(args)})")

    def not_in(self, key: str, *args: str) -> None:
        """Select objects whose label key has none of the given values."""
        if self._valid_set(key, args):
            self._statements.append(f"{key} notin ({', '.join(args)})")

    @staticmethod
    def _valid_set(key: str, values: tuple[str, ...]) -> bool:
        return (
            valid_label_value(key)
            and bool(values)
            and all(valid_label_value(value) for value in values)
        )