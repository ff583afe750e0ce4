"""Parse batch directive files into account directives.

A directive file holds one account per line in the form
``name:password:uid:gid``. Blank lines are ignored; there is no header and no
escaping of ``:`` inside fields.
"""
from __future__ import annotations

import re
from collections.abc import Iterator
from pathlib import Path

from ..errors import HostIOError, InvalidInputError, NotFoundError
from .models import AccountDirective

FIELD_SEPARATOR = ":"
FIELD_COUNT = 4
MAX_ID = 2**32 - 1

_DIGITS = re.compile(r"[0-9]+")


def parse_directive(
    line: str,
    *,
    line_number: int | None = None,
    source: str = "",
) -> AccountDirective:
    """Parse a single non-blank directive *line*.

    Raises :class:`InvalidInputError` when a field is missing, the line has
    extra fields, the name is empty, or uid/gid are not unsigned 32-bit
    integers. The error message names *source* and *line_number* when given.
    """
    where = _location(source, line_number)
    parts = line.strip().split(FIELD_SEPARATOR)
    if len(parts) != FIELD_COUNT:
        raise InvalidInputError(
            f"{where}expected {FIELD_COUNT} fields (name:password:uid:gid), got {len(parts)}."
        )
    name, password, uid_text, gid_text = parts
    if not name:
        raise InvalidInputError(f"{where}account name is empty.")
    if not password:
        raise InvalidInputError(f"{where}password for '{name}' is empty.")
    return AccountDirective(
        name=name,
        password=password,
        uid=_parse_id(uid_text, "uid", where),
        gid=_parse_id(gid_text, "gid", where),
    )


def load_directives(path: str | Path) -> Iterator[AccountDirective]:
    """Yield directives from *path* lazily, in file order.

    Raises :class:`NotFoundError` before reading when *path* does not exist.
    A malformed line raises when the iterator reaches it, after the preceding
    directives have been yielded.
    """
    directive_path = Path(path)
    if not directive_path.exists():
        raise NotFoundError(f"Path {str(directive_path)!r} does not exist")
    return _iter_directives(directive_path)


def _iter_directives(path: Path) -> Iterator[AccountDirective]:
    try:
        with path.open("r", encoding="utf-8-sig") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                yield parse_directive(line, line_number=line_number, source=str(path))
    except (OSError, UnicodeDecodeError) as exc:
        raise HostIOError(f"Failed to read directive file {path}: {exc}") from exc


def _parse_id(text: str, label: str, where: str) -> int:
    if not _DIGITS.fullmatch(text):
        raise InvalidInputError(f"{where}{label} {text!r} is not a non-negative integer.")
    value = int(text)
    if value > MAX_ID:
        raise InvalidInputError(f"{where}{label} {value} exceeds {MAX_ID}.")
    return value


def _location(source: str, line_number: int | None) -> str:
    if source and line_number is not None:
        return f"{source}:{line_number}: "
    if line_number is not None:
        return f"line {line_number}: "
    return ""


__all__ = ["FIELD_COUNT", "MAX_ID", "load_directives", "parse_directive"]
