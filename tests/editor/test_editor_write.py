"""Tests for grideditor.editor.Editor writes: create, edit, remove, upload and validation gating."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from grideditor.column_type import ColumnType
from grideditor.constants import SQL_INSERTION_ALERT
from grideditor.date_format import DateFormat
from grideditor.dialects import SqliteDialect
from grideditor.editor import Editor
from grideditor.errors import ConfigurationError
from grideditor.field import Field
from grideditor.join import Join, JoinType
from grideditor.output import ErrorOutput, UploadOutput
from grideditor.query import QueryType
from grideditor.upload import DatabaseUpload, UploadColumn, UploadedFile
from grideditor.validation import ValidationType, Validator


def _names():
    return [
        Field(table="employees", db="FIRSTNAME", validator=Validator(ValidationType.REQUIRED)),
        Field(table="employees", db="LASTNAME", validator=Validator(ValidationType.REQUIRED)),
    ]


def _department():
    return Join(
        parent_table="employees", child_table="departments", type=JoinType.LEFT,
        parent_field="DEPT_ID", child_field="id", can_write=False,
        fields=(Field(table="departments", db="NAME"),),
    )


def _address(validator=None):
    return Join(
        parent_table="employees", child_table="addresses", type=JoinType.LEFT,
        parent_field="id", child_field="EMPLOYEE_ID",
        fields=(Field(table="addresses", db="CITY", validator=validator),),
    )


def _access():
    return Join(
        parent_table="employees", child_table="access", link_table="employee_access",
        parent_fields=("id", "employee_id"), child_fields=("id", "access_id"),
        fields=(Field(table="access", db="id", type=ColumnType.INT, can_write=False), Field(table="access", db="NAME", can_write=False)),
    )


def _record(monkeypatch, db, method):
    """Wrap a Database method and collect its first argument on every call."""
    calls = []
    original = getattr(db, method)

    def recorder(argument, *args, **kwargs):
        calls.append(argument)
        return original(argument, *args, **kwargs)

    monkeypatch.setattr(db, method, recorder)
    return calls


def _mock_database():
    database = MagicMock()
    return database, dict(dialect=SqliteDialect(), database=database)


class TestCreate:

    def test_create_outputs_row_nested_under_table(self, db, fetch_all):
        editor = Editor("employees", _names(), database=db)
        output = editor.process({
            "action": "create",
            "data[0][employees][FIRSTNAME]": "Katherine",
            "data[0][employees][LASTNAME]": "Johnson",
        })
        assert output.to_dict() == {
            "data": [{"DT_RowId": "row_4", "employees": {"FIRSTNAME": "Katherine", "LASTNAME": "Johnson"}}],
            "options": {},
            "files": {},
        }
        assert fetch_all("SELECT FIRSTNAME, LASTNAME FROM employees WHERE id = 4") == [("Katherine", "Johnson")]

    def test_create_flat_when_table_not_addressed(self, db):
        editor = Editor("employees", _names(), database=db)
        output = editor.process({"action": "create", "data[0][FIRSTNAME]": "Mary", "data[0][LASTNAME]": "Jackson"})
        assert output.to_dict()["data"] == [{"DT_RowId": "row_4", "FIRSTNAME": "Mary", "LASTNAME": "Jackson"}]

    def test_create_cascades_to_joins(self, db, fetch_all):
        fields = _names() + [
            Field(table="employees", db="DEPT_ID", type=ColumnType.INT, substitute=Field(table="departments", db="NAME")),
            Field(table="employees", db="HIRED", type=ColumnType.DATE, date_format=DateFormat(pattern="%d/%m/%Y")),
        ]
        editor = Editor("employees", fields, joins=[_department(), _address(), _access()], database=db)
        output = editor.process({
            "action": "create",
            "data[0][employees][FIRSTNAME]": "Dorothy",
            "data[0][employees][LASTNAME]": "Vaughan",
            "data[0][employees][DEPT_ID]": "2",
            "data[0][employees][HIRED]": "01/12/1943",
            "data[0][addresses][CITY]": "Hampton",
            "data[0][access][0][id]": "1",
            "data[0][access][1][id]": "3",
            "data[0][access-many-count]": "2",
        }).to_dict()
        row = output["data"][0]
        assert row["DT_RowId"] == "row_4"
        assert row["employees"] == {"FIRSTNAME": "Dorothy", "LASTNAME": "Vaughan", "DEPT_ID": "2", "HIRED": "01/12/1943"}
        assert row["departments"] == {"NAME": "Research"}
        assert row["addresses"] == {"CITY": "Hampton"}
        assert sorted(access["NAME"] for access in row["access"]) == ["Printer", "Web"]
        assert fetch_all("SELECT HIRED, DEPT_ID FROM employees WHERE id = 4") == [("1943-12-01", 2)]
        assert fetch_all("SELECT CITY FROM addresses WHERE EMPLOYEE_ID = 4") == [("Hampton",)]
        assert fetch_all("SELECT access_id FROM employee_access WHERE employee_id = 4 ORDER BY access_id") == [(1,), (3,)]

    def test_required_field_missing_runs_no_sql(self):
        """A failed validation returns the field errors before any statement is run."""
        database, options = _mock_database()
        editor = Editor("employees", _names(), **options)
        output = editor.process({"action": "create", "data[0][employees][FIRSTNAME]": "", "data[0][employees][LASTNAME]": "X"})
        assert output.to_dict() == {"fieldErrors": [{"name": "FIRSTNAME", "status": "This field is required"}]}
        assert database.method_calls == []

    def test_join_field_errors_are_named_by_table(self, db, fetch_all):
        editor = Editor(
            "employees", _names(), joins=[_address(Validator(ValidationType.MAXLEN_REQUIRED, max=5))], database=db,
        )
        output = editor.process({
            "action": "create",
            "data[0][employees][FIRSTNAME]": "A",
            "data[0][employees][LASTNAME]": "B",
            "data[0][addresses][CITY]": "Springfield",
        })
        assert output.to_dict()["fieldErrors"] == [{"name": "addresses.CITY", "status": "The input is 6 characters too long"}]
        assert fetch_all("SELECT COUNT(*) FROM employees") == [(3,)]

    def test_injection_raises_editor_alert(self):
        alerts = []
        database, options = _mock_database()
        editor = Editor("employees", _names(), validator_alert=lambda message, text: alerts.append((message, text)), **options)
        output = editor.process({
            "action": "create",
            "data[0][employees][FIRSTNAME]": "Bob'; DROP TABLE employees",
            "data[0][employees][LASTNAME]": "Tables",
        })
        assert output.to_dict()["fieldErrors"][0]["status"] == "Invalid input. Try again."
        assert alerts == [(SQL_INSERTION_ALERT, "Bob'; DROP TABLE employees")]
        assert database.method_calls == []

    def test_create_failure_sends_error(self, db):
        editor = Editor("employees", [Field(table="employees", db="NO_SUCH_COLUMN")], database=db)
        output = editor.process({"action": "create", "data[0][employees][NO_SUCH_COLUMN]": "x"})
        assert isinstance(output, ErrorOutput)
        assert output.to_dict()["data"] == []


    def test_failed_join_insert_rolls_back_the_row(self, db, fetch_all):
        broken = _address().model_copy(update={"fields": (Field(table="addresses", db="NO_SUCH_COLUMN"),)})
        editor = Editor("employees", _names(), joins=[broken], database=db)
        output = editor.process({
            "action": "create",
            "data[0][employees][FIRSTNAME]": "Orphan",
            "data[0][employees][LASTNAME]": "Row",
            "data[0][addresses][NO_SUCH_COLUMN]": "x",
        })
        assert isinstance(output, ErrorOutput)
        assert fetch_all("SELECT COUNT(*) FROM employees WHERE FIRSTNAME = 'Orphan'") == [(0,)]
        assert fetch_all("SELECT COUNT(*) FROM addresses") == [(2,)]

    def test_join_values_never_fill_a_parent_field_of_the_same_name(self, db, fetch_all):
        fields = _names() + [Field(table="employees", db="EMAIL", name="CITY")]
        editor = Editor("employees", fields, joins=[_address()], database=db)
        editor.process({
            "action": "create",
            "data[0][employees][FIRSTNAME]": "Dorothy",
            "data[0][employees][LASTNAME]": "Vaughan",
            "data[0][addresses][CITY]": "Hampton",
        })
        assert fetch_all("SELECT EMAIL FROM employees WHERE id = 4") == [(None,)]
        assert fetch_all("SELECT CITY FROM addresses WHERE EMPLOYEE_ID = 4") == [("Hampton",)]


class TestEdit:

    def test_multi_row_edit_runs_one_update_per_row(self, db, fetch_all, monkeypatch):
        updates = _record(monkeypatch, db, "execute_insert_update")
        editor = Editor("employees", _names(), database=db)
        output = editor.process({
            "action": "edit",
            "data[row_1][employees][LASTNAME]": "King",
            "data[row_2][employees][LASTNAME]": "Mathison",
        }).to_dict()
        assert [query.type for query in updates] == [QueryType.UPDATE, QueryType.UPDATE]
        assert [query.values for query in updates] == [("King", 1), ("Mathison", 2)]
        assert output["data"] == [
            {"DT_RowId": "row_1", "employees": {"FIRSTNAME": "Ada", "LASTNAME": "King"}},
            {"DT_RowId": "row_2", "employees": {"FIRSTNAME": "Alan", "LASTNAME": "Mathison"}},
        ]
        assert fetch_all("SELECT LASTNAME FROM employees ORDER BY id") == [("King",), ("Mathison",), ("Hopper",)]

    def test_edit_validates_every_row_before_writing(self, db, fetch_all):
        editor = Editor("employees", _names(), database=db)
        output = editor.process({
            "action": "edit",
            "data[row_1][employees][LASTNAME]": "King",
            "data[row_2][employees][LASTNAME]": "",
        })
        assert output.to_dict() == {"fieldErrors": [{"name": "LASTNAME", "status": "This field is required"}]}
        assert fetch_all("SELECT LASTNAME FROM employees WHERE id = 1") == [("Lovelace",)]

    def test_edit_only_validates_touched_fields(self, db):
        editor = Editor("employees", _names(), database=db)
        output = editor.process({"action": "edit", "data[row_3][employees][FIRSTNAME]": "Amazing Grace"})
        assert output.to_dict()["data"] == [
            {"DT_RowId": "row_3", "employees": {"FIRSTNAME": "Amazing Grace", "LASTNAME": "Hopper"}}
        ]

    def test_edit_replaces_links_and_upserts_direct_joins(self, db, fetch_all):
        editor = Editor("employees", _names(), joins=[_department(), _address(), _access()], database=db)
        output = editor.process({
            "action": "edit",
            "data[row_3][employees][LASTNAME]": "Hopper",
            "data[row_3][addresses][CITY]": "Arlington",
            "data[row_3][access][0][id]": "2",
            "data[row_3][access-many-count]": "1",
        }).to_dict()
        row = output["data"][0]
        assert row["addresses"] == {"CITY": "Arlington"}
        assert row["departments"] == {"NAME": "Sales"}
        assert row["access"] == [{"id": "2", "NAME": "Servers"}]
        assert fetch_all("SELECT access_id FROM employee_access WHERE employee_id = 3") == [(2,)]
        assert fetch_all("SELECT CITY FROM addresses WHERE EMPLOYEE_ID = 3") == [("Arlington",)]

    def test_edit_leaves_unaddressed_joins_alone(self, db, fetch_all):
        editor = Editor("employees", _names(), joins=[_address(), _access()], database=db)
        editor.process({"action": "edit", "data[row_1][employees][LASTNAME]": "King"})
        assert fetch_all("SELECT CITY FROM addresses WHERE EMPLOYEE_ID = 1") == [("London",)]
        assert fetch_all("SELECT COUNT(*) FROM employee_access WHERE employee_id = 1") == [(2,)]

    def test_disabled_updates(self):
        database, options = _mock_database()
        editor = Editor("employees", _names(), disable_updates=True, **options)
        assert editor.process({"action": "edit", "data[row_1][employees][LASTNAME]": "x"}).to_dict()["data"] == []
        assert database.method_calls == []


    def test_join_key_does_not_touch_a_parent_field_of_the_same_name(self, db, fetch_all):
        """Only ``data[row][employees][CITY]`` or ``data[row][CITY]`` address the parent column."""
        fields = _names() + [Field(table="employees", db="EMAIL", name="CITY")]
        editor = Editor("employees", fields, joins=[_address()], database=db)
        editor.process({"action": "edit", "data[row_1][addresses][CITY]": "Paris"})
        assert fetch_all("SELECT EMAIL FROM employees WHERE id = 1") == [("ada@example.com",)]
        assert fetch_all("SELECT CITY FROM addresses WHERE EMPLOYEE_ID = 1") == [("Paris",)]

    def test_failed_link_replace_rolls_back_the_edit(self, db, fetch_all):
        broken = _access().model_copy(update={"child_fields": ("id", "NO_SUCH_COLUMN")})
        editor = Editor("employees", _names(), joins=[broken], database=db)
        output = editor.process({
            "action": "edit",
            "data[row_1][employees][LASTNAME]": "King",
            "data[row_1][access][0][id]": "3",
        })
        assert isinstance(output, ErrorOutput)
        assert fetch_all("SELECT LASTNAME FROM employees WHERE id = 1") == [("Lovelace",)]
        assert fetch_all("SELECT access_id FROM employee_access WHERE employee_id = 1 ORDER BY access_id") == [(1,), (2,)]

    def test_multi_row_edit_is_one_transaction(self, db, fetch_all):
        broken = _address().model_copy(update={"fields": (Field(table="addresses", db="NO_SUCH_COLUMN"),)})
        editor = Editor("employees", _names(), joins=[broken], database=db)
        output = editor.process({
            "action": "edit",
            "data[row_1][employees][LASTNAME]": "King",
            "data[row_2][employees][LASTNAME]": "Mathison",
            "data[row_2][addresses][NO_SUCH_COLUMN]": "x",
        })
        assert isinstance(output, ErrorOutput)
        assert fetch_all("SELECT LASTNAME FROM employees WHERE id IN (1, 2) ORDER BY id") == [("Lovelace",), ("Turing",)]


class TestRemove:

    def test_remove_batches_deletes(self, db, seeded_db, fetch_all, monkeypatch):
        conn = sqlite3.connect(seeded_db)
        conn.execute("INSERT INTO employees (id, LASTNAME) VALUES (4, 'Four'), (7, 'Seven')")
        conn.execute("INSERT INTO employee_access (employee_id, access_id) VALUES (4, 1), (7, 2)")
        conn.commit()
        conn.close()
        batches = _record(monkeypatch, db, "execute_deletes")
        editor = Editor("employees", _names(), joins=[_access()], database=db)
        output = editor.process({"action": "remove", "data[row_4][id]": "4", "data[row_7][id]": "7"})
        assert output.to_dict() == {"data": [], "options": {}, "files": {}}
        assert [[query.sql for query in batch] for batch in batches] == [
            ["DELETE FROM employees WHERE employees.id = ?"] * 2,
            ["DELETE FROM employee_access WHERE employee_access.employee_id = ?"] * 2,
        ]
        assert [[query.values for query in batch] for batch in batches] == [[(4,), (7,)], [(4,), (7,)]]
        assert fetch_all("SELECT id FROM employees ORDER BY id") == [(1,), (2,), (3,)]
        assert fetch_all("SELECT COUNT(*) FROM employee_access WHERE employee_id IN (4, 7)") == [(0,)]

    def test_remove_failure_sends_error(self, db):
        editor = Editor("no_such_table", _names(), database=db)
        output = editor.process({"action": "remove", "data[row_1][id]": "1"})
        assert isinstance(output, ErrorOutput)

    def test_disabled_deletes(self):
        database, options = _mock_database()
        editor = Editor("employees", _names(), disable_deletes=True, **options)
        assert editor.process({"action": "remove", "data[row_1][id]": "1"}).to_dict()["data"] == []
        assert database.method_calls == []


    def test_failed_join_delete_keeps_the_rows(self, db, fetch_all):
        missing = Join(
            parent_table="employees", child_table="no_such_table", parent_field="id", child_field="EMPLOYEE_ID",
            fields=(Field(table="no_such_table", db="X"),),
        )
        editor = Editor("employees", _names(), joins=[_access(), missing], database=db)
        output = editor.process({"action": "remove", "data[row_3][id]": "3"})
        assert isinstance(output, ErrorOutput)
        assert fetch_all("SELECT COUNT(*) FROM employees WHERE id = 3") == [(1,)]
        assert fetch_all("SELECT COUNT(*) FROM employee_access WHERE employee_id = 3") == [(3,)]


class TestUpload:

    def _editor(self, db, **kwargs):
        upload = DatabaseUpload("files", {"FILENAME": UploadColumn.FILE_NAME, "CONTENT": UploadColumn.CONTENT})
        photo = Field(table="employees", db="PHOTO", type=ColumnType.INT, upload=upload)
        return Editor("employees", _names() + [photo], database=db, **kwargs)

    def test_upload_delegates_to_field_upload(self, db):
        editor = self._editor(db)
        output = editor.process({"action": "upload", "upload_rowid": ""}, file=UploadedFile(name="a.png", content=b"a"))
        assert isinstance(output, UploadOutput)
        assert output.to_dict() == {
            "data": [],
            "files": {"files": {"1": {"id": "1", "FILENAME": "a.png"}}},
            "upload": {"id": "1"},
        }

    def test_read_sends_upload_registry(self, db):
        editor = self._editor(db)
        editor.process({"action": "upload"}, file=UploadedFile(name="a.png", content=b"a"))
        editor.process({"action": "edit", "data[row_1][employees][PHOTO]": "1"})
        output = editor.process({}).to_dict()
        assert output["files"] == {"files": {"1": {"id": "1", "FILENAME": "a.png"}}}
        assert output["data"][0]["PHOTO"] == "1"

    def test_writes_clean_orphaned_uploads(self, db, fetch_all):
        editor = self._editor(db)
        editor.process({"action": "upload"}, file=UploadedFile(name="a.png", content=b"a"))
        editor.process({"action": "edit", "data[row_1][employees][LASTNAME]": "King"})
        assert fetch_all("SELECT COUNT(*) FROM files") == [(0,)]

    def test_upload_without_upload_field_raises(self, db):
        editor = Editor("employees", _names(), database=db)
        with pytest.raises(ConfigurationError, match="no field with an upload"):
            editor.process({"action": "upload"})

    def test_disabled_uploads(self, db):
        editor = self._editor(db, disable_uploads=True)
        assert editor.process({"action": "upload"}).to_dict()["data"] == []
