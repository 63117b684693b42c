"""File uploads attached to a field.

An upload keeps one row per file in its own table; the field it is attached
to holds that row's id. :class:`Upload` provides what the editor needs
around that table (the registry sent with reads, and the removal of rows no
field points to anymore); storing the file itself is left to
:meth:`Upload.execute`. :class:`DatabaseUpload` is a ready-made
implementation keeping the file in the table, or in a directory.
"""

from __future__ import annotations

import datetime
import enum
import logging
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Sequence

from pydantic import BaseModel

from .bindings import Bindings
from .column_type import ColumnType
from .expressions import LogicOperator, WhereCondition
from .field import Field
from .output import ErrorOutput, FieldErrorsOutput, Output, UploadOutput
from .query import Query, QueryType
from .validation import ValidationMessage

logger = logging.getLogger(__name__)


class UploadColumn(str, enum.Enum):
    """What an upload table column holds."""

    CONTENT = "content"
    CONTENT_TYPE = "content_type"
    EXTN = "extn"
    FILE_NAME = "file_name"
    FILE_SIZE = "file_size"
    MIME_TYPE = "mime_type"
    MODIFIED = "modified"
    WEB_PATH = "web_path"
    SYSTEM_PATH = "system_path"


class UploadedFile(BaseModel):
    name: str
    content: bytes = b""
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)

    @property
    def extension(self) -> str:
        return os.path.splitext(self.name)[1].lstrip(".")


class Upload(ABC):
    """Upload table ``table`` with ``columns`` (name -> :class:`UploadColumn`).

    ``on_clean(ids)`` is called with the ids of orphaned rows before they are
    removed; returning True means the callback took care of them.
    """

    def __init__(
        self,
        table: str,
        columns: Mapping[str, UploadColumn],
        primary_key: str = "id",
        on_clean: Optional[Callable[[list[int]], bool]] = None,
    ):
        self.table = table
        self.columns = {name: UploadColumn(kind) for name, kind in columns.items()}
        self.primary_key = primary_key
        self.on_clean = on_clean

    @property
    def listed_columns(self) -> list[str]:
        """Columns sent to the client (everything but the file content)."""
        return [name for name, kind in self.columns.items() if kind is not UploadColumn.CONTENT]

    def registry(self, db) -> dict[str, dict[str, str]]:
        """``{id: {primary key: id, column: value, ...}}`` for every row of the upload table."""
        columns = [self.primary_key, *self.listed_columns]
        rows = db.execute_raw_select(f"SELECT {', '.join(columns)} FROM {self.table}")
        return {row[0]: dict(zip(columns, row)) for row in rows}

    def clean(self, db, field: Field) -> list[int]:
        """Remove rows no longer referenced by ``field``; returns their ids."""
        sql = (
            f"SELECT {self.primary_key} FROM {self.table} WHERE {self.primary_key} NOT IN"
            f" (SELECT {field.db} FROM {field.table} WHERE {field.db} IS NOT NULL)"
        )
        ids = [int(row[0]) for row in db.execute_raw_select(sql)]
        if not ids:
            return []
        if self.on_clean is not None and self.on_clean(ids):
            return ids
        self.remove_files(ids)
        key = Field(table=self.table, db=self.primary_key, type=ColumnType.INT)
        query = Query(
            type=QueryType.DELETE,
            table=self.table,
            dialect=db.dialect,
            where=[WhereCondition(field=key, value=id) for id in ids],
            filter_operator=LogicOperator.OR,
        )
        db.execute_deletes([query])
        logger.info("Removed %d orphaned row(s) from `%s`", len(ids), self.table)
        return ids

    def remove_files(self, ids: Sequence[int]) -> None:
        """Delete stored files of orphaned rows; nothing to do when files live in the table."""

    @abstractmethod
    def execute(self, db, field: Field, row_id: Optional[int] = None, file: Optional[UploadedFile] = None) -> Output:
        """Store ``file`` (replacing row ``row_id`` if given) and return the envelope."""
        ...  # pylint: disable=unnecessary-ellipsis


class DatabaseUpload(Upload):
    """Stores uploads in the upload table.

    With ``directory`` the content is written to ``<directory>/<id>.<extn>``
    instead, and SYSTEM_PATH / WEB_PATH columns record where (``web_root``
    prefixes the web path).
    """

    def __init__(
        self,
        table: str,
        columns: Mapping[str, UploadColumn],
        primary_key: str = "id",
        on_clean: Optional[Callable[[list[int]], bool]] = None,
        extensions: Optional[Sequence[str]] = None,
        extension_error: str = "This file type cannot be uploaded",
        max_file_size: Optional[int] = None,
        directory: Optional[str] = None,
        web_root: str = "/upload",
    ):
        super().__init__(table, columns, primary_key, on_clean)
        self.extensions = [extension.lower() for extension in extensions] if extensions else None
        self.extension_error = extension_error
        self.max_file_size = max_file_size
        self.directory = Path(directory) if directory else None
        self.web_root = web_root.rstrip("/")
        if self.directory is not None:
            self.directory.mkdir(parents=True, exist_ok=True)

    def validate_file(self, file: UploadedFile) -> ValidationMessage:
        if self.max_file_size is not None and file.size > self.max_file_size:
            return ValidationMessage(
                valid=False,
                message=f"The file {file.name} exceeds the maximum file size: {self.max_file_size} bytes.",
            )
        if self.extensions is not None and file.extension.lower() not in self.extensions:
            return ValidationMessage(valid=False, message=self.extension_error)
        return ValidationMessage(valid=True)

    def _column_value(self, kind: UploadColumn, file: UploadedFile) -> tuple[ColumnType, Any]:
        if kind is UploadColumn.CONTENT:
            return ColumnType.FILE, (None if self.directory is not None else file.content)
        if kind in (UploadColumn.CONTENT_TYPE, UploadColumn.MIME_TYPE):
            return ColumnType.STRING, file.content_type
        if kind is UploadColumn.EXTN:
            return ColumnType.STRING, file.extension
        if kind is UploadColumn.FILE_NAME:
            return ColumnType.STRING, file.name
        if kind is UploadColumn.FILE_SIZE:
            return ColumnType.LONG, file.size
        if kind is UploadColumn.MODIFIED:
            return ColumnType.STRING, datetime.datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        if kind in (UploadColumn.WEB_PATH, UploadColumn.SYSTEM_PATH):
            return ColumnType.STRING, "-"
        raise ValueError(f"Unhandled upload column {kind!r}")

    def _path(self, id: int, file: UploadedFile) -> Path:
        name = f"{id}.{file.extension}" if file.extension else str(id)
        return self.directory / name

    def _write(self, db, bindings: Bindings, fields: list[Field], row_id: Optional[int]) -> Optional[int]:
        if row_id is not None:
            key = Field(table=self.table, db=self.primary_key, type=ColumnType.INT)
            query = Query(
                type=QueryType.UPDATE, table=self.table, dialect=db.dialect, fields=fields,
                where=[WhereCondition(field=key, value=row_id)], bindings=bindings,
            )
            return row_id if db.execute_insert_update(query) else None
        query = Query(
            type=QueryType.INSERT, table=self.table, dialect=db.dialect, fields=fields,
            primary_key=self.primary_key, bindings=bindings,
        )
        return query.generated_key if db.execute_insert_update(query) else None

    def store(self, db, file: UploadedFile, row_id: Optional[int] = None) -> Optional[int]:
        """Write the row (and the file when stored on disk); returns its id, None on failure."""
        bindings = Bindings()
        fields = []
        for name, kind in self.columns.items():
            column_type, value = self._column_value(kind, file)
            field = Field(table=self.table, db=name, type=column_type)
            bindings.set(field, value)
            fields.append(field)
        id = self._write(db, bindings, fields, row_id)
        if id is None or self.directory is None:
            return id
        path = self._path(id, file)
        path.write_bytes(file.content)
        paths = {UploadColumn.SYSTEM_PATH: str(path), UploadColumn.WEB_PATH: f"{self.web_root}/{path.name}"}
        path_fields = []
        path_bindings = Bindings()
        for name, kind in self.columns.items():
            if kind in paths:
                field = Field(table=self.table, db=name)
                path_bindings.set(field, paths[kind])
                path_fields.append(field)
        if path_fields:
            self._write(db, path_bindings, path_fields, id)
        return id

    def remove_files(self, ids: Sequence[int]) -> None:
        if self.directory is None:
            return
        names = {str(id) for id in ids}
        for path in self.directory.iterdir():
            if path.is_file() and path.stem in names:
                path.unlink()

    def execute(self, db, field: Field, row_id: Optional[int] = None, file: Optional[UploadedFile] = None) -> Output:
        if file is None:
            return FieldErrorsOutput().add(field.name, "No file uploaded")
        message = self.validate_file(file)
        if not message.valid:
            return FieldErrorsOutput().add(field.name, message.message)
        id = self.store(db, file, row_id)
        if id is None:
            return ErrorOutput(error=f"The file {file.name} could not be stored")
        return UploadOutput(files={self.table: self.registry(db)}, upload_id=str(id))


__all__ = ["Upload", "DatabaseUpload", "UploadColumn", "UploadedFile"]
