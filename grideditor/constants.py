"""Protocol constants shared by the decoder, the orchestrator and the envelopes."""

IDPREFIX = "row_"
"""Prefix of row identifiers on the wire (e.g. ``row_42``)."""

DT_ROWID = "DT_RowId"
DT_ROWCLASS = "DT_RowClass"

CREATE = "create"
EDIT = "edit"
REMOVE = "remove"
UPLOAD = "upload"

BINARYDATA = "***Binary Data Field***"
"""Placeholder returned instead of the content of binary/large-object columns."""

SQL_INSERTION_ALERT = "SQL Insertion Attack Alert"

MANY_COUNT = "many-count"
"""Marker segment the client sends alongside multi-value relations; never data."""
