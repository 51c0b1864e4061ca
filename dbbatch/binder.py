"""
Placeholder handling.

Statements are written with ``:name`` (or ``?``) placeholders whatever the
driver.  The binder coerces hinted values, expands ``IN`` lists and renders
every placeholder in the paramstyle the driver declares, always passing the
parameters positionally so repeated names and mixed styles work everywhere.

A binding value is either a plain value or a ``(value, hint)`` pair::

    {":active": (1, "bool"), ":name": ("jo", "like"), ":ids": ([1, 2, 3], "in_int")}
"""
from __future__ import annotations

import datetime as dt
import re
import typing as t

from sqlparse import lexer
from sqlparse import tokens as T

from dbbatch.errors import BindingError

HINTS = frozenset(
    {
        "null", "bool", "int", "float", "string", "like", "limit", "offset",
        "date", "time", "datetime", "in", "in_int", "in_string",
    }
)
IN_HINTS = frozenset({"in", "in_int", "in_string"})

_NUMBERED_RE = re.compile(r"\A[$:?](\d+)\Z")
_PYFORMAT_RE = re.compile(r"\A%\((\w+)\)s\Z")
_LIKE_ESCAPE_RE = re.compile(r"([\\%_])")


def _name(key: t.Any) -> t.Any:
    """``":id"`` and ``"id"`` address the same placeholder; ints stay ints."""
    if isinstance(key, str):
        return key[1:] if key[:1] in (":", "$", "@") else key
    return key


def _split(entry: t.Any) -> tuple[t.Any, str | None]:
    if (
        isinstance(entry, tuple)
        and len(entry) == 2
        and isinstance(entry[1], str)
        and entry[1].lower() in HINTS
    ):
        return entry[0], entry[1].lower()
    return entry, None


# ------------------------------------------------------------------------- #
# Value coercion
# ------------------------------------------------------------------------- #
def _to_datetime(value: t.Any) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time())
    if isinstance(value, dt.time):
        return dt.datetime.combine(dt.date.today(), value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return dt.datetime.fromtimestamp(value, tz=dt.timezone.utc).replace(tzinfo=None)
    if isinstance(value, str):
        text = value.strip()
        try:
            return dt.datetime.fromisoformat(text)
        except ValueError:
            pass
        try:
            return dt.datetime.combine(dt.date.today(), dt.time.fromisoformat(text))
        except ValueError:
            pass
    raise ValueError(f"cannot interpret {value!r} as a date/time")


def coerce(value: t.Any, hint: str | None, name: t.Any = "?") -> t.Any:
    """Apply a type *hint* to *value*; plain values pass through untouched."""
    if hint is None:
        return value
    try:
        if hint == "null" or value is None:
            return None
        if hint == "bool":
            if isinstance(value, str):
                return 0 if value.strip().lower() in ("", "0", "false", "off", "no") else 1
            return 1 if value else 0
        if hint == "int":
            return int(value)
        if hint in ("limit", "offset"):
            number = int(value)
            if number < 0:
                raise ValueError("must not be negative")
            return number
        if hint == "float":
            return float(value)
        if hint == "string":
            return str(value)
        if hint == "like":
            return "%" + _LIKE_ESCAPE_RE.sub(r"\\\1", str(value)) + "%"
        if hint == "date":
            return _to_datetime(value).strftime("%Y-%m-%d")
        if hint == "time":
            return _to_datetime(value).strftime("%H:%M:%S")
        if hint == "datetime":
            return _to_datetime(value).strftime("%Y-%m-%d %H:%M:%S")
    except (TypeError, ValueError) as exc:
        raise BindingError(f"Binding `{name}` cannot be used as {hint}: {exc}") from exc
    raise BindingError(f"Binding `{name}` has unsupported type hint `{hint}`.")


# ------------------------------------------------------------------------- #
# Binder
# ------------------------------------------------------------------------- #
class Binder:
    """Render statements for one DB‑API *paramstyle*."""

    def __init__(self, paramstyle: str = "qmark") -> None:
        if paramstyle not in ("qmark", "format", "pyformat", "numeric", "named"):
            raise ValueError(f"Unsupported paramstyle {paramstyle!r}")
        self.paramstyle = paramstyle

    def expand_in(
        self, sql: str, bindings: t.Mapping[t.Any, t.Any]
    ) -> tuple[str, dict[t.Any, t.Any]]:
        """
        Replace every ``:name`` bound to an ``in`` hint with one placeholder
        per element (``:name_0, :name_1, …``).  An empty list becomes
        ``NULL`` so ``x IN (NULL)`` simply matches nothing.
        """
        expanded: dict[t.Any, t.Any] = {}
        lists: dict[t.Any, list] = {}
        for key, entry in bindings.items():
            value, hint = _split(entry)
            if hint in IN_HINTS:
                if isinstance(value, (str, bytes)) or not isinstance(value, t.Iterable):
                    raise BindingError(f"Binding `{key}` must be a list for `{hint}`.")
                element_hint = {"in_int": "int", "in_string": "string"}.get(hint)
                items = list(value)
                lists[_name(key)] = items
                for i, item in enumerate(items):
                    expanded[f"{_name(key)}_{i}"] = (item, element_hint) if element_hint else item
            else:
                expanded[key] = entry

        if not lists:
            return sql, expanded

        parts = []
        for ttype, token in lexer.tokenize(sql):
            name = _name(token) if ttype is T.Name.Placeholder else None
            if name in lists:
                items = lists[name]
                token = ", ".join(f":{name}_{i}" for i in range(len(items))) or "NULL"
            parts.append(token)
        return "".join(parts), expanded

    def bind_all(
        self, sql: str, bindings: t.Mapping[t.Any, t.Any]
    ) -> tuple[str, list[t.Any] | dict[str, t.Any]]:
        """Return *sql* rewritten for the driver and the matching parameters."""
        if not bindings:
            return sql, []

        sql, bindings = self.expand_in(sql, bindings)
        values: dict[t.Any, t.Any] = {}
        for key, entry in bindings.items():
            value, hint = _split(entry)
            values[_name(key)] = coerce(value, hint, key)

        parts: list[str] = []
        params: list[t.Any] = []
        position = 0
        for ttype, token in lexer.tokenize(sql):
            if ttype is not T.Name.Placeholder:
                parts.append(token)
                continue
            key = self._key(token, position)
            if token in ("?", "%s"):
                position += 1
            if key not in values:
                raise BindingError(f"No binding provided for placeholder `{token}`.")
            params.append(values[key])
            parts.append(self._marker(len(params)))

        if self.paramstyle == "named":
            return "".join(parts), {f"p{i}": v for i, v in enumerate(params, 1)}
        return "".join(parts), params

    @staticmethod
    def _key(token: str, position: int) -> t.Any:
        if token in ("?", "%s"):
            return position + 1
        numbered = _NUMBERED_RE.match(token)
        if numbered:
            return int(numbered.group(1))
        pyformat = _PYFORMAT_RE.match(token)
        if pyformat:
            return pyformat.group(1)
        return _name(token)

    def _marker(self, index: int) -> str:
        if self.paramstyle == "qmark":
            return "?"
        if self.paramstyle in ("format", "pyformat"):
            return "%s"
        if self.paramstyle == "numeric":
            return f":{index}"
        return f":p{index}"
