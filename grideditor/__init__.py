"""grideditor: server side of the editable-grid protocol, built on Pydantic and SQL."""

from .connection import connect
from .column_type import ColumnType
from .date_format import DateFormat
from .field import Field
from .bindings import Bindings
from .expressions import LogicOperator, Order, WhereCondition, WhereConditionGroups
from .query import Query, QueryType
from .join import Join, JoinType, binary_search
from .parameters import Parameters
from .validation import Validator, ValidationType, ValidationMessage
from .database import Database
from .upload import Upload, DatabaseUpload, UploadColumn, UploadedFile
from .output import Output, RowsOutput, FieldErrorsOutput, UploadOutput, ErrorOutput
from .editor import Editor
from .errors import (
    GridEditorError,
    ConfigurationError,
    InsufficientDataError,
    DatabaseError,
    BindTypeError,
)

__all__ = [
    "connect",
    "ColumnType",
    "DateFormat",
    "Field",
    "Bindings",
    "LogicOperator",
    "Order",
    "WhereCondition",
    "WhereConditionGroups",
    "Query",
    "QueryType",
    "Join",
    "JoinType",
    "binary_search",
    "Parameters",
    "Validator",
    "ValidationType",
    "ValidationMessage",
    "Database",
    "Upload",
    "DatabaseUpload",
    "UploadColumn",
    "UploadedFile",
    "Output",
    "RowsOutput",
    "FieldErrorsOutput",
    "UploadOutput",
    "ErrorOutput",
    "Editor",
    "GridEditorError",
    "ConfigurationError",
    "InsufficientDataError",
    "DatabaseError",
    "BindTypeError",
]
