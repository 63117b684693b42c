"""Request orchestration.

:class:`Editor` is configured once with a table, its fields and joins, and
then serves any number of requests through :meth:`Editor.process`. Each call
dispatches on the request action (read when there is none) and returns an
envelope from :mod:`grideditor.output`. Values bound for a request live in a
:class:`grideditor.bindings.Bindings` created by that call, so an editor can
be shared between requests.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence

from .bindings import Bindings
from .column_type import ColumnType
from .constants import CREATE, DT_ROWCLASS, DT_ROWID, EDIT, IDPREFIX, REMOVE, UPLOAD
from .database import Database
from .dialects import Dialect
from .errors import BindTypeError, ConfigurationError, DatabaseError
from .expressions import (
    Expression,
    Fragment,
    NaryOperatorExpression,
    Order,
    WhereCondition,
    WhereConditionGroups,
)
from .field import Field
from .join import Join, JoinCache
from .output import ErrorOutput, FieldErrorsOutput, Output, RowsOutput
from .parameters import Column, Parameters
from .query import Query, QueryType
from .upload import UploadedFile

logger = logging.getLogger(__name__)


class Editor:
    """Serves the grid protocol for ``table``.

    Args:
        table: parent table.
        fields: column descriptors of the parent table.
        primary_key: primary key column of the parent table.
        joins: child tables, see :class:`grideditor.join.Join`.
        where: conditions ANDed into every read.
        where_groups: grouped conditions, used instead of ``where`` when set.
        orders: default sort of reads.
        include_row_id: send ``DT_RowId`` with every row.
        include_row_class: send ``DT_RowClass``, built from ``row_class_prefix``
            and the value of the ``row_class_field`` column.
        options: sent as is with every read (e.g. select lists).
        database: defaults to the connection registered as ``"default"``.
        dialect: overrides the dialect of ``database`` when rendering SQL.
        validator_alert: ``alert(message, text)`` for validators without one.
    """

    def __init__(
        self,
        table: str,
        fields: Sequence[Field],
        primary_key: str = "id",
        joins: Sequence[Join] = (),
        where: Sequence[Expression] = (),
        where_groups: Optional[WhereConditionGroups] = None,
        orders: Sequence[Order] = (),
        include_row_id: bool = True,
        include_row_class: bool = False,
        row_class_prefix: str = "",
        row_class_field: Optional[str] = None,
        disable_reads: bool = False,
        disable_inserts: bool = False,
        disable_updates: bool = False,
        disable_deletes: bool = False,
        disable_uploads: bool = False,
        options: Optional[Mapping[str, Any]] = None,
        database: Optional[Database] = None,
        dialect: Optional[Dialect] = None,
        validator_alert: Optional[Callable[[str, str], None]] = None,
    ):
        if not table:
            raise ConfigurationError("Editor needs a table")
        if not fields:
            raise ConfigurationError(f"Editor on `{table}` needs at least one field")
        self.table = table
        self.fields = list(fields)
        self.primary_key = primary_key
        self.joins = list(joins)
        self.where = list(where)
        self.where_groups = where_groups
        self.orders = list(orders)
        self.include_row_id = include_row_id
        self.include_row_class = include_row_class
        self.row_class_prefix = row_class_prefix
        self.disable_reads = disable_reads
        self.disable_inserts = disable_inserts
        self.disable_updates = disable_updates
        self.disable_deletes = disable_deletes
        self.disable_uploads = disable_uploads
        self.options = dict(options or {})
        self.database = database if database is not None else Database()
        self._dialect = dialect
        self.validator_alert = validator_alert
        self._key = Field(table=table, db=primary_key, type=ColumnType.INT)
        self.row_class_field = None
        if include_row_class:
            self.row_class_field = self._find_row_class_field(row_class_field)

    def _find_row_class_field(self, name: Optional[str]) -> Field:
        if not name:
            raise ConfigurationError("include_row_class needs row_class_field")
        for field in self.fields:
            if field.db.lower() == name.lower():
                return field
        raise ConfigurationError(f"row_class_field `{name}` is not a field of `{self.table}`")

    # configuration views

    @property
    def dialect(self) -> Dialect:
        return self._dialect if self._dialect is not None else self.database.dialect

    @property
    def readable_fields(self) -> list[Field]:
        return [field for field in self.fields if field.can_read]

    @property
    def writable_fields(self) -> list[Field]:
        return [field for field in self.fields if field.can_write]

    @property
    def writable_joins(self) -> list[Join]:
        return [join for join in self.joins if join.can_write]

    @property
    def _direct_joins(self) -> list[Join]:
        """Joins rendered in the main SELECT, in column order."""
        return [join for join in self.joins if not join.is_link_table and not join.exclude_on_select]

    @property
    def _link_joins(self) -> list[Join]:
        return [join for join in self.joins if join.is_link_table]

    def _upload_fields(self) -> list[Field]:
        fields = [field for field in self.fields if field.upload is not None]
        for join in self.joins:
            fields.extend(field for field in join.fields if field.upload is not None)
        return fields

    # entry point

    def process(self, params: Any, file: Optional[UploadedFile] = None) -> Output:
        """Serve one request.

        ``params`` is a :class:`Parameters` or the flat request mapping;
        ``file`` is the uploaded file of an upload request.

        Raises:
            InsufficientDataError: a link join could not be resolved.
            ConfigurationError: the editor or its joins are misconfigured.
        """
        if not isinstance(params, Parameters):
            params = Parameters.from_mapping(params)
        logger.debug("%s", params)
        action = params.action
        if action == CREATE:
            return self.create(params)
        if action == EDIT:
            return self.edit(params)
        if action == REMOVE:
            return self.remove(params)
        if action == UPLOAD:
            return self.upload(params, file)
        return self.read(params)

    # read

    def _select_query(self) -> Query:
        fields = [self._key]
        if self.row_class_field is not None:
            fields.append(self.row_class_field)
        fields.extend(self.readable_fields)
        return Query(
            type=QueryType.SELECT,
            table=self.table,
            dialect=self.dialect,
            fields=fields,
            joins=self._direct_joins,
            where=list(self.where),
            where_groups=self.where_groups,
            orders=list(self.orders),
            primary_key=self.primary_key,
        )

    def _searchable_fields(self) -> list[tuple[str, Field]]:
        """``(owner, field)`` for every column a grid column may point at."""
        fields = [(self.table, field) for field in self.readable_fields]
        for join in self._direct_joins:
            fields.extend((join.name, field) for field in join.fields)
        return fields

    def _column_field(self, column: Column) -> Optional[Field]:
        """Field shown by a grid column.

        A ``data`` naming a field (``LASTNAME`` or ``employees.LASTNAME``)
        wins; a numeric ``data`` is an index into the fields; otherwise the
        column's own index is.
        """
        candidates = self._searchable_fields()
        for owner, field in candidates:
            if column.data in (field.name, field.db, f"{owner}.{field.name}"):
                return field
        index = int(column.data) if column.data.isdigit() else column.index
        readable = self.readable_fields
        if 0 <= index < len(readable):
            return readable[index]
        return None

    def _ssp_orders(self, params: Parameters) -> list[Order]:
        orders = []
        for order in params.orders:
            column = params.column(order.column)
            if column is None or not column.orderable:
                continue
            field = self._column_field(column)
            if field is not None:
                orders.append(Order(field=field, desc=order.descending))
        return orders

    def _ssp_filters(self, params: Parameters) -> list[Expression]:
        """Search conditions: OR over searchable columns for the global value, else AND per column."""
        if params.search_value:
            conditions = []
            for column in params.columns:
                field = self._column_field(column) if column.searchable else None
                if field is not None and field.type is not ColumnType.DBFUNCTION:
                    conditions.append(WhereCondition(field=field, value=f"%{params.search_value}%", operator="LIKE"))
            if not conditions:
                return []
            return [NaryOperatorExpression(symbol="OR", arguments=tuple(conditions))]
        conditions = []
        for column in params.columns:
            if not column.searchable or not column.search_value:
                continue
            field = self._column_field(column)
            if field is not None and field.type is not ColumnType.DBFUNCTION:
                conditions.append(WhereCondition(field=field, value=f"%{column.search_value}%", operator="LIKE"))
        return conditions

    def _static_filter(self) -> list[Expression]:
        if self.where_groups is not None and self.where_groups.groups:
            return [Fragment(text=f"({self.where_groups.sql})", params=self.where_groups.values)]
        return list(self.where)

    def _apply_ssp(self, query: Query, params: Parameters) -> None:
        orders = self._ssp_orders(params)
        if orders:
            query.orders = orders
        filters = self._ssp_filters(params)
        if filters:
            query.where = self._static_filter() + filters
            query.where_groups = None
        if params.length != -1:
            query.offset = max(params.start, 0)
            query.limit = params.length

    def _fetch_links(self) -> list[tuple[Join, JoinCache]]:
        """Fetch every readable link join once for this request."""
        caches = []
        for join in self._link_joins:
            if not join.can_read or join.exclude_on_output:
                continue
            upload_mode = any(field.upload is not None for field in join.fields)
            caches.append((join, join.fetch(self.database, self.primary_key, upload_mode)))
        return caches

    @staticmethod
    def _display(field: Field, text: str) -> str:
        if field.type is not ColumnType.DATE or not text:
            return text
        try:
            return field.date_format.sql_to_format(text)
        except ValueError:
            logger.warning("Sending %s unformatted: %r", field, text)
            return text

    def _row_output(self, row: Sequence[str], links: Sequence[tuple[Join, JoinCache]], nest: bool) -> dict[str, Any]:
        """Protocol row for a row of :meth:`_select_query`."""
        values = iter(row)
        id = next(values)
        output: dict[str, Any] = {}
        if self.include_row_id:
            output[DT_ROWID] = f"{IDPREFIX}{id}"
        if self.row_class_field is not None:
            output[DT_ROWCLASS] = f"{self.row_class_prefix}{next(values)}"
        parent = {}
        for field in self.readable_fields:
            text = next(values)
            if not field.exclude_on_output:
                parent[field.name] = self._display(field, text)
        if nest:
            output[self.table] = parent
        else:
            output.update(parent)
        for join in self._direct_joins:
            mapping = {}
            for field in join.fields:
                text = next(values)
                if not field.exclude_on_output:
                    mapping[field.name] = self._display(field, text)
            if join.can_read and not join.exclude_on_output:
                output[join.name] = mapping
        for join, cache in links:
            output[join.name] = join.resolve(cache, id, self.primary_key)
        return output

    def _files(self) -> dict[str, dict[str, dict[str, Any]]]:
        files = {}
        for field in self._upload_fields():
            files[field.upload.table] = field.upload.registry(self.database)
        return files

    def read(self, params: Parameters) -> RowsOutput:
        if self.disable_reads:
            return RowsOutput()
        ssp = params.draw > -1
        query = self._select_query()
        if ssp:
            self._apply_ssp(query, params)
        try:
            rows = self.database.execute_select(query, with_counts=ssp)
            links = self._fetch_links()
            files = self._files()
        except (DatabaseError, BindTypeError) as error:
            logger.error("Read on `%s` failed, sending no rows: %s", self.table, error)
            return RowsOutput()
        nest = bool(self.joins)
        output = RowsOutput(
            data=[self._row_output(row, links, nest) for row in rows],
            options=self.options,
            files=files,
        )
        if ssp:
            output.draw = params.draw
            output.records_total = query.total
            output.records_filtered = query.filtered_total
        return output

    # binding and validation

    def _client_text(self, params: Parameters, field: Field, row_id: Optional[int]) -> str:
        """Text sent for a parent field, nested under the table or flat."""
        return params.get_field_value(field.name, row_id=row_id, table=self.table)

    @staticmethod
    def _join_text(params: Parameters, join: Join, field: Field, row_id: Optional[int]) -> str:
        return params.get_field_value(field.name, row_id=row_id, table=join.name, flat=False)

    def _bind(self, params: Parameters, bindings: Bindings, fields: Iterable[Field], joins: Iterable[tuple[Join, list[Field]]], row_id: Optional[int]) -> None:
        for field in fields:
            text = self._client_text(params, field, row_id)
            bindings.set_from_client(field, text)
            if field.substitute is not None and text:
                # the lookup join is read-only, its values are loaded regardless
                for join in self.joins:
                    if join.child_table.lower() == field.substitute.table.lower():
                        join.load_field_values(self.database, bindings, text)
                        break
        for join, join_fields in joins:
            for field in join_fields:
                bindings.set_from_client(field, self._join_text(params, join, field, row_id))

    def _validate(self, params: Parameters, fields: Iterable[Field], joins: Iterable[tuple[Join, list[Field]]], row_id: Optional[int]) -> Optional[FieldErrorsOutput]:
        """Field-error envelope for the first invalid field, None when all pass."""
        for field in fields:
            if field.validator is None:
                continue
            message = field.validator.validate(self._client_text(params, field, row_id), self.validator_alert)
            if not message.valid:
                return FieldErrorsOutput().add(field.name, message.message)
        for join, join_fields in joins:
            for field in join_fields:
                if field.validator is None:
                    continue
                text = self._join_text(params, join, field, row_id)
                message = field.validator.validate(text, self.validator_alert)
                if not message.valid:
                    return FieldErrorsOutput().add(f"{join.name}.{field.name}", message.message)
        return None

    def _written_row(self, bindings: Bindings, id: int, nest: bool) -> dict[str, Any]:
        """Protocol row of a created row, from the values bound for it."""
        output: dict[str, Any] = {DT_ROWID: f"{IDPREFIX}{id}"}
        parent = {field.name: bindings.text(field) for field in self.readable_fields if not field.exclude_on_output}
        if nest:
            output[self.table] = parent
        else:
            output.update(parent)
        for join in self.joins:
            if not join.can_read or join.exclude_on_output:
                continue
            if join.is_link_table:
                upload_mode = any(field.upload is not None for field in join.fields)
                cache = join.fetch(self.database, self.primary_key, upload_mode)
                output[join.name] = join.resolve(cache, id, self.primary_key)
            else:
                output[join.name] = {
                    field.name: bindings.text(field) for field in join.fields if not field.exclude_on_output
                }
        return output

    def _clean_uploads(self) -> None:
        for field in self._upload_fields():
            field.upload.clean(self.database, field)

    # create

    def _insert(self, params: Parameters, bindings: Bindings, fields: list[Field]) -> int:
        """INSERT the parent row and its join rows; raises DatabaseError when any of them fails."""
        query = Query(
            type=QueryType.INSERT,
            table=self.table,
            dialect=self.dialect,
            fields=fields,
            primary_key=self.primary_key,
            bindings=bindings,
        )
        if not self.database.execute_insert_update(query) or query.generated_key is None:
            raise DatabaseError(f"A new row could not be added to `{self.table}`")
        id = query.generated_key
        for join in self.writable_joins:
            if not join.insert(self.database, bindings, id, params):
                raise DatabaseError(f"The `{join.name}` values of new row {id} could not be added")
        return id

    def create(self, params: Parameters) -> Output:
        """Insert one row with its join rows, all committed together."""
        if self.disable_inserts:
            return RowsOutput()
        bindings = Bindings()
        fields = self.writable_fields
        joins = [(join, join.writable_fields) for join in self.writable_joins]
        self._bind(params, bindings, fields, joins, None)
        errors = self._validate(params, fields, joins, None)
        if errors is not None:
            return errors
        try:
            with self.database.transaction():
                id = self._insert(params, bindings, fields)
        except DatabaseError as error:
            logger.error("Create on `%s` rolled back: %s", self.table, error)
            return ErrorOutput(error=str(error))
        logger.info("Created row %s in `%s`", id, self.table)
        nest = bool(self.joins) or params.addresses_table(self.table)
        output = RowsOutput(data=[self._written_row(bindings, id, nest)])
        self._clean_uploads()
        return output

    # edit

    @staticmethod
    def _touches(names: set[tuple[Optional[str], str]], field: Field, *tables: Optional[str]) -> bool:
        return any((table, field.name) in names for table in tables)

    def _selected_row(self, id: int) -> Optional[list[str]]:
        query = self._select_query()
        query.where = [WhereCondition(field=self._key, value=int(id))]
        query.where_groups = None
        query.orders = []
        rows = self.database.execute_select(query)
        return rows[0] if rows else None

    def _update(self, params: Parameters, bindings: Bindings, id: int, fields: list[Field], joins: list[Join]) -> None:
        """UPDATE one parent row and cascade to ``joins``; raises DatabaseError when any of them fails."""
        bindings.discard(self.fields)
        for join in self.joins:
            bindings.discard(join.fields)
        self._bind(params, bindings, fields, [(join, join.writable_fields) for join in joins], id)
        if fields:
            query = Query(
                type=QueryType.UPDATE,
                table=self.table,
                dialect=self.dialect,
                fields=fields,
                where=[WhereCondition(field=self._key, value=int(id))],
                bindings=bindings,
            )
            if not self.database.execute_insert_update(query):
                raise DatabaseError(f"Row {id} of `{self.table}` could not be updated")
        for join in joins:
            if not join.update(self.database, bindings, id, params):
                raise DatabaseError(f"The `{join.name}` values of row {id} could not be updated")

    def edit(self, params: Parameters) -> Output:
        """Update every row the request carries.

        All rows are validated before the first UPDATE runs, and all of them
        are written in one transaction.
        """
        if self.disable_updates:
            return RowsOutput()
        touched = params.get_row_fields()
        ids = params.get_distinct_id_values()
        plans = []
        for id in ids:
            names = touched.get(id, set())
            fields = [field for field in self.writable_fields if self._touches(names, field, None, self.table)]
            joins = [
                join for join in self.writable_joins
                if params.addresses_table(join.name, id) or params.addresses_table(join.child_table, id)
            ]
            checked = [
                (join, [field for field in join.writable_fields if self._touches(names, field, join.name, join.child_table)])
                for join in joins
            ]
            errors = self._validate(params, fields, checked, id)
            if errors is not None:
                return errors
            plans.append((id, fields, joins))

        bindings = Bindings()
        try:
            with self.database.transaction():
                for id, fields, joins in plans:
                    self._update(params, bindings, id, fields, joins)
        except DatabaseError as error:
            logger.error("Edit on `%s` rolled back: %s", self.table, error)
            return ErrorOutput(error=str(error))
        logger.info("Updated row(s) %s in `%s`", ", ".join(map(str, ids)), self.table)

        nest = bool(self.joins) or params.addresses_table(self.table)
        data = []
        try:
            links = self._fetch_links()
            for id in ids:
                row = self._selected_row(id)
                if row is not None:
                    data.append(self._row_output(row, links, nest))
        except DatabaseError as error:
            return ErrorOutput(error=str(error))
        self._clean_uploads()
        return RowsOutput(data=data)

    # remove

    def remove(self, params: Parameters) -> Output:
        """Delete rows and their join rows in one transaction."""
        if self.disable_deletes:
            return RowsOutput()
        ids = params.get_distinct_id_values()
        queries = [
            Query(
                type=QueryType.DELETE,
                table=self.table,
                dialect=self.dialect,
                where=[WhereCondition(field=self._key, value=int(id))],
            )
            for id in ids
        ]
        try:
            with self.database.transaction():
                self.database.execute_deletes(queries)
                for join in self.writable_joins:
                    join.delete(self.database, ids)
        except DatabaseError as error:
            logger.error("Remove on `%s` rolled back: %s", self.table, error)
            return ErrorOutput(error=str(error))
        logger.info("Removed %d row(s) from `%s`", len(ids), self.table)
        self._clean_uploads()
        return RowsOutput()

    # upload

    def upload(self, params: Parameters, file: Optional[UploadedFile] = None) -> Output:
        """Hand the file to the upload of the first field that carries one."""
        if self.disable_uploads:
            return RowsOutput()
        fields = self._upload_fields()
        if not fields:
            raise ConfigurationError(f"Editor on `{self.table}` has no field with an upload")
        field = fields[0]
        row_id = params.upload_rowid
        if row_id.startswith(IDPREFIX):
            row_id = row_id[len(IDPREFIX):]
        return field.upload.execute(self.database, field, int(row_id) if row_id.isdigit() else None, file)


__all__ = ["Editor"]
