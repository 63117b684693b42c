"""Response envelopes.

``to_dict()`` gives the structure the grid widget expects; ``to_json()``
serializes it.
"""

from __future__ import annotations

import json
from typing import Any, Optional

from pydantic import BaseModel, Field as PydanticField


class Output(BaseModel):

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError("Subclasses must implement `to_dict`")

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class RowsOutput(Output):
    """Rows of a read, or of a create/edit/remove.

    The paging counters are only sent when the client asked for server-side
    processing.
    """

    data: list[dict[str, Any]] = PydanticField(default_factory=list)
    options: dict[str, Any] = PydanticField(default_factory=dict)
    files: dict[str, dict[str, dict[str, Any]]] = PydanticField(default_factory=dict)
    draw: Optional[int] = None
    records_total: Optional[int] = None
    records_filtered: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"data": self.data, "options": self.options, "files": self.files}
        if self.draw is not None:
            result["draw"] = self.draw
        if self.records_total is not None:
            result["recordsTotal"] = self.records_total
        if self.records_filtered is not None:
            result["recordsFiltered"] = self.records_filtered
        return result


class FieldErrorsOutput(Output):
    """Validation failures: one ``{"name", "status"}`` entry per field."""

    field_errors: list[dict[str, str]] = PydanticField(default_factory=list)

    def add(self, name: str, status: str) -> FieldErrorsOutput:
        self.field_errors.append({"name": name, "status": status})
        return self

    def to_dict(self) -> dict[str, Any]:
        return {"fieldErrors": self.field_errors}


class UploadOutput(Output):
    """Registry of the upload table plus the id of the file just stored."""

    files: dict[str, dict[str, dict[str, Any]]] = PydanticField(default_factory=dict)
    upload_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"data": [], "files": self.files, "upload": {"id": self.upload_id}}


class ErrorOutput(Output):

    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "data": []}


__all__ = ["Output", "RowsOutput", "FieldErrorsOutput", "UploadOutput", "ErrorOutput"]
