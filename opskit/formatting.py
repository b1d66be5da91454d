"""Render API documents as aligned text tables and field blocks.

Every helper here is a pure function of its input: nothing performs I/O, so
flows build the strings and hand them to :class:`opskit.console.Console`.

Examples
--------
Render a table of buckets::

    columns = [Column("BUCKET NAME", "Name", 40), Column("CREATED", "CreationDate")]
    for line in render_table(response["Buckets"], columns):
        console.line(line)

Render a detail block::

    fields = [("Status", "Table.TableStatus"), ("Items", "Table.ItemCount")]
    for line in render_fields(response, fields):
        console.line(line)

"""

from __future__ import annotations

import collections.abc as cabc
import dataclasses
import datetime as dt
import re
import typing as typ

PLACEHOLDER = "N/A"
ELLIPSIS = "..."
INDENT = "  "

_KIB = 1024
_MIB = 1024 * 1024
_GIB = 1024 * 1024 * 1024

# Values at or below this length are masked entirely.
_MASK_REVEAL_MIN_LENGTH = 8
_MASK_EDGE = 4
_MASK = "****"

_URL_PASSWORD_PATTERN = re.compile(r"(:)[^:@/]+(@)")
_WEBHOOK_TOKEN_PATTERN = re.compile(r"(webhooks/[0-9]+/)[^/]+")


def _is_missing(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value)


def get_path(document: object, path: str, default: str = PLACEHOLDER) -> object:
    """Look up a dotted path inside nested mappings and sequences.

    Parameters
    ----------
    document : object
        Decoded JSON document (mappings, lists and scalars).
    path : str
        Dotted path such as ``"Table.KeySchema.0.AttributeName"``. Numeric
        segments index into sequences. An empty path returns ``document``.
    default : str, optional
        Value returned when any segment is missing or the leaf is ``None``
        or an empty string.

    Returns
    -------
    object
        The value found at ``path`` or ``default``.

    """
    current = document
    for segment in path.split(".") if path else ():
        if isinstance(current, cabc.Mapping):
            if segment not in current:
                return default
            current = current[segment]
        elif isinstance(current, cabc.Sequence) and not isinstance(current, str):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return default
        else:
            return default
    return default if _is_missing(current) else current


def format_scalar(value: object) -> str:
    """Convert a decoded value to display text.

    Datetimes use ``YYYY-MM-DD HH:MM:SS``, booleans are lower-case and
    lists are joined with ``", "``.
    """
    if isinstance(value, dt.datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, dt.date):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | tuple):
        return ", ".join(format_scalar(item) for item in value)
    return str(value)


def truncate(text: str, width: int | None) -> str:
    """Shorten ``text`` to ``width`` characters, ending in ``...``.

    ``None`` or a non-positive width leaves the text unchanged. Widths too
    narrow for the ellipsis cut the text without one.
    """
    if width is None or width <= 0 or len(text) <= width:
        return text
    if width <= len(ELLIPSIS):
        return text[:width]
    return text[: width - len(ELLIPSIS)] + ELLIPSIS


@dataclasses.dataclass(frozen=True, slots=True)
class Column:
    """A table column.

    Attributes
    ----------
    header
        Column heading.
    path
        Dotted path passed to :func:`get_path`, or a callable that receives
        the row and returns the cell value.
    width
        Fixed column width. ``None`` means the column is not padded and is
        only sensible for the last column.

    """

    header: str
    path: str | cabc.Callable[[typ.Any], object]
    width: int | None = None

    def cell(self, row: object) -> str:
        """Extract, format and truncate this column's value from ``row``."""
        if callable(self.path):
            value = self.path(row)
            value = PLACEHOLDER if _is_missing(value) else value
        else:
            value = get_path(row, self.path)
        return truncate(format_scalar(value), self.width)


def _join_cells(cells: cabc.Sequence[str], columns: cabc.Sequence[Column]) -> str:
    parts = [
        cell.ljust(column.width) if column.width and index < len(cells) - 1 else cell
        for index, (cell, column) in enumerate(zip(cells, columns, strict=True))
    ]
    return (INDENT + " ".join(parts)).rstrip()


def render_table(
    rows: cabc.Iterable[object], columns: cabc.Sequence[Column]
) -> list[str]:
    """Render rows as a fixed-width table with a dashed underline row.

    Parameters
    ----------
    rows : Iterable[object]
        Decoded documents, one per table row.
    columns : Sequence[Column]
        Column definitions in display order.

    Returns
    -------
    list[str]
        Header line, underline line and one line per row.

    """
    lines = [
        _join_cells([column.header for column in columns], columns),
        _join_cells(["-" * len(column.header) for column in columns], columns),
    ]
    lines.extend(
        _join_cells([column.cell(row) for column in columns], columns) for row in rows
    )
    return lines


def render_fields(
    document: object,
    fields: cabc.Iterable[tuple[str, str | cabc.Callable[[typ.Any], object]]],
    *,
    label_width: int = 16,
) -> list[str]:
    """Render ``Label:  value`` lines for a single document.

    Parameters
    ----------
    document : object
        Decoded document to read values from.
    fields : Iterable[tuple[str, str | Callable]]
        ``(label, path)`` pairs; ``path`` follows :attr:`Column.path`.
    label_width : int, optional
        Width the ``label:`` prefix is padded to.

    Returns
    -------
    list[str]
        One indented line per field.

    """
    lines = []
    for label, path in fields:
        cell = Column(label, path).cell(document)
        lines.append(f"{INDENT}{(label + ':').ljust(label_width)}{cell}")
    return lines


def human_size(size: int | float) -> str:
    """Format a byte count using the largest unit it exceeds."""
    if size > _GIB:
        return f"{size / _GIB:.2f} GB"
    if size > _MIB:
        return f"{size / _MIB:.2f} MB"
    if size > _KIB:
        return f"{size / _KIB:.2f} KB"
    return f"{int(size)} bytes"


def mask_value(value: str) -> str:
    """Mask a secret, revealing four characters at each end of long values."""
    if len(value) > _MASK_REVEAL_MIN_LENGTH:
        return f"{value[:_MASK_EDGE]}{_MASK}{value[-_MASK_EDGE:]}"
    return _MASK


def mask_url_password(url: str) -> str:
    """Replace the password in a ``user:password@host`` URL with ``****``."""
    return _URL_PASSWORD_PATTERN.sub(rf"\g<1>{_MASK}\g<2>", url, count=1)


def mask_webhook_token(url: str) -> str:
    """Replace the token segment of a ``webhooks/<id>/<token>`` URL."""
    return _WEBHOOK_TOKEN_PATTERN.sub(rf"\g<1>{_MASK}", url)


__all__ = [
    "ELLIPSIS",
    "PLACEHOLDER",
    "Column",
    "format_scalar",
    "get_path",
    "human_size",
    "mask_url_password",
    "mask_value",
    "mask_webhook_token",
    "render_fields",
    "render_table",
    "truncate",
]
