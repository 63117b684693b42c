"""Request parameter decoding.

The grid widget posts flat, bracket-keyed parameters::

    action=edit
    data[row_12][employees][LASTNAME]=Smith
    data[row_12][access][0][id]=3
    columns[0][data]=LASTNAME
    columns[0][search][value]=
    order[0][column]=0
    order[0][dir]=asc

:meth:`Parameters.from_mapping` turns them into :class:`Parameters`; the row
data stays keyed by the original strings, in sorted order, and is looked up
by bracket segment.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Iterator, Literal, Mapping, Optional

from pydantic import BaseModel, Field as PydanticField, field_validator

from .constants import EDIT, IDPREFIX, MANY_COUNT

logger = logging.getLogger(__name__)


_SEGMENT = re.compile(r"\[([^\]]*)\]")
_COLUMN_KEY = re.compile(r"^columns\[(\d+)\]\[(data|name|orderable|searchable)\]$")
_COLUMN_SEARCH_KEY = re.compile(r"^columns\[(\d+)\]\[search\]\[(value|regex)\]$")
_ORDER_KEY = re.compile(r"^order\[(\d+)\]\[(column|dir)\]$")


def _segments(key: str) -> list[str]:
    """``data[row_1][employees][LASTNAME]`` -> ``["row_1", "employees", "LASTNAME"]``"""
    return _SEGMENT.findall(key)


def _as_bool(text: str) -> bool:
    return str(text).strip().lower() == "true"


def _as_int(name: str, text: str, default: int = -1) -> int:
    try:
        return int(text)
    except (TypeError, ValueError):
        logger.warning("Ignoring non numeric `%s` parameter: %r", name, text)
        return default


class Column(BaseModel):
    """One ``columns[i]`` entry of a server-side processing request."""

    index: int
    data: str = ""
    name: str = ""
    searchable: bool = False
    orderable: bool = False
    search_value: str = ""
    search_regex: bool = False


class ColumnOrder(BaseModel):
    """One ``order[i]`` entry: sort on column ``column``."""

    index: int
    column: int = -1
    direction: Literal["asc", "desc"] = "asc"

    @property
    def descending(self) -> bool:
        return self.direction == "desc"


class Parameters(BaseModel):
    """Decoded request.

    ``draw``, ``start`` and ``length`` are -1 when absent; ``draw > -1``
    means the client asked for server-side processing.
    """

    action: str = ""
    upload_rowid: str = ""
    draw: int = -1
    start: int = -1
    length: int = -1
    search_value: str = ""
    search_regex: bool = False
    columns: list[Column] = PydanticField(default_factory=list)
    orders: list[ColumnOrder] = PydanticField(default_factory=list)
    data: dict[str, str] = PydanticField(default_factory=dict)
    """``data[...]`` keys with their values, sorted by key."""

    @field_validator("data")
    @classmethod
    def _sort_data(cls, value: dict[str, str]) -> dict[str, str]:
        return dict(sorted(value.items()))

    @classmethod
    def from_mapping(cls, flat: Mapping[str, Any]) -> Parameters:
        """Decode a flat mapping such as a parsed query string or form body.

        List values (as produced by ``urllib.parse.parse_qs``) use their first
        item.
        """
        values: dict[str, str] = {}
        for key, value in flat.items():
            if isinstance(value, (list, tuple)):
                value = value[0] if value else ""
            values[str(key)] = "" if value is None else str(value)

        columns: dict[int, dict[str, Any]] = {}
        orders: dict[int, dict[str, Any]] = {}
        data: dict[str, str] = {}
        for key, value in values.items():
            if key.startswith("data["):
                data[key] = value
                continue
            match = _COLUMN_KEY.match(key)
            if match:
                index, attribute = int(match.group(1)), match.group(2)
                column = columns.setdefault(index, {"index": index})
                column[attribute] = _as_bool(value) if attribute in ("orderable", "searchable") else value
                continue
            match = _COLUMN_SEARCH_KEY.match(key)
            if match:
                index, attribute = int(match.group(1)), match.group(2)
                column = columns.setdefault(index, {"index": index})
                if attribute == "value":
                    column["search_value"] = value
                else:
                    column["search_regex"] = _as_bool(value)
                continue
            match = _ORDER_KEY.match(key)
            if match:
                index, attribute = int(match.group(1)), match.group(2)
                order = orders.setdefault(index, {"index": index})
                if attribute == "column":
                    order["column"] = _as_int(key, value)
                else:
                    order["direction"] = "asc" if value == "asc" else "desc"

        return cls(
            action=values.get("action", ""),
            upload_rowid=values.get("upload_rowid", ""),
            draw=_as_int("draw", values["draw"]) if "draw" in values else -1,
            start=_as_int("start", values["start"]) if "start" in values else -1,
            length=_as_int("length", values["length"]) if "length" in values else -1,
            search_value=values.get("search[value]", ""),
            search_regex=_as_bool(values.get("search[regex]", "false")),
            columns=[Column(**columns[index]) for index in sorted(columns)],
            orders=[ColumnOrder(**orders[index]) for index in sorted(orders)],
            data=data,
        )

    # columns

    def column(self, index: int) -> Optional[Column]:
        """The column whose ``columns[index]`` entry was sent."""
        for column in self.columns:
            if column.index == index:
                return column
        return None

    def column_by_data(self, name: str) -> Optional[Column]:
        """The column whose ``data`` (or, failing that, ``name``) equals ``name``."""
        for column in self.columns:
            if column.data == name:
                return column
        for column in self.columns:
            if column.name == name:
                return column
        return None

    # row keys

    @staticmethod
    def get_row_number(key: str) -> Optional[int]:
        """Row id from the first bracket: ``data[row_23][x]`` -> 23, ``data[0][x]`` -> 0.

        Returns None when the first bracket is not a row (``data[employees][x]``).
        """
        segments = _segments(key)
        if not segments:
            return None
        first = segments[0]
        if first.startswith(IDPREFIX) and first[len(IDPREFIX):].isdigit():
            return int(first[len(IDPREFIX):])
        if first.isdigit():
            return int(first)
        return None

    @staticmethod
    def get_field_name(key: str) -> str:
        """Last bracket: ``data[row_23][employees][FIRSTNAME]`` -> ``FIRSTNAME``."""
        segments = _segments(key)
        return segments[-1] if segments else ""

    def _data_items(self) -> Iterator[tuple[str, list[str], str]]:
        for key, value in self.data.items():
            yield key, _segments(key), value

    def get_data_keys(self) -> list[str]:
        """``"row:field"`` for every data key, ``many-count`` markers excluded."""
        return [
            f"{self.get_row_number(key)}:{self.get_field_name(key)}"
            for key in self.data
            if MANY_COUNT not in key
        ]

    def get_key_groups(self) -> list[tuple[Optional[int], list[str]]]:
        """``(row, [field names])`` pairs, a new group starting whenever the row changes."""
        groups: list[tuple[Optional[int], list[str]]] = []
        for key in self.data:
            if MANY_COUNT in key:
                continue
            row = self.get_row_number(key)
            if not groups or groups[-1][0] != row:
                groups.append((row, []))
            groups[-1][1].append(self.get_field_name(key))
        return groups

    def get_distinct_id_values(self) -> list[int]:
        """Row ids in the order they first appear in the sorted keys."""
        ids: list[int] = []
        for key in self.data:
            row = self.get_row_number(key)
            if row is not None and row not in ids:
                ids.append(row)
        return ids

    def addresses_table(self, table: str, row_id: Any = None) -> bool:
        """Whether any data key (of row ``row_id`` if given) carries a ``[table]`` bracket."""
        row = None if row_id is None else f"{IDPREFIX}{row_id}"
        for _, segments, _ in self._data_items():
            if table in segments and (row is None or row in segments):
                return True
        return False

    def is_multi_row_edit(self) -> bool:
        return self.action == EDIT and len(self.get_distinct_id_values()) > 1

    # row values

    def get_data_value(self, field: str, row_id: Any = None, table: Optional[str] = None) -> str:
        """Value of the data key holding bracket ``field``, or ``""``.

        ``row_id`` and ``table`` further require brackets ``row_<row_id>`` and
        ``table``. Without either, the last matching key wins; otherwise the
        first one does.
        """
        row = None if row_id is None else f"{IDPREFIX}{row_id}"
        value = ""
        for _, segments, text in self._data_items():
            if field not in segments:
                continue
            if row is not None and row not in segments:
                continue
            if table is not None and table not in segments:
                continue
            if row is None and table is None:
                value = text
                continue
            return text
        return value

    def get_field_value(self, field: str, row_id: Any = None, table: Optional[str] = None, flat: bool = True) -> str:
        """Value of ``field`` nested under ``table`` (``data[row][table][field]``).

        With ``flat``, a key without a table (``data[row][field]``) is used when
        no nested one was sent. A key nested under another table never matches.
        ``row_id`` None accepts any row.
        """
        row = None if row_id is None else f"{IDPREFIX}{row_id}"
        value = ""
        for _, segments, text in self._data_items():
            if len(segments) not in (2, 3) or segments[-1] != field:
                continue
            if row is not None and segments[0] != row:
                continue
            if len(segments) == 3 and segments[1] == table:
                return text
            if len(segments) == 2 and flat:
                value = text
        return value

    def get_row_fields(self) -> dict[Optional[int], set[tuple[Optional[str], str]]]:
        """``{row: {(table, field)}}`` for every data key; ``table`` is None for flat keys."""
        rows: dict[Optional[int], set[tuple[Optional[str], str]]] = {}
        for key, segments, _ in self._data_items():
            if MANY_COUNT in key or len(segments) < 2:
                continue
            table = segments[1] if len(segments) > 2 else None
            rows.setdefault(self.get_row_number(key), set()).add((table, segments[-1]))
        return rows

    def get_data_values(self, id: Any, table: str) -> list[str]:
        """Values of a multi-value relation (``data[row_<id>][table][n][...]``).

        Keys of a new row (``data[0][table]...``) are included too.
        """
        row = f"{IDPREFIX}{id}"
        values = []
        for key, segments, text in self._data_items():
            if table not in segments or MANY_COUNT in key:
                continue
            if row in segments or key.startswith("data[0]"):
                values.append(text)
        return values

    def __str__(self) -> str:
        lines = ["PARAMETERS RECEIVED:"]
        for name in ("action", "upload_rowid", "draw", "start", "length", "search_value"):
            value = getattr(self, name)
            if value not in ("", -1):
                lines.append(f"\t{name}: {value}")
        lines.extend(f"\t{column!r}" for column in self.columns)
        lines.extend(f"\t{order!r}" for order in self.orders)
        lines.extend(f"\t{key} = {value}" for key, value in self.data.items())
        return "\n".join(lines)


__all__ = ["Parameters", "Column", "ColumnOrder"]
