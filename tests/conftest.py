import os
import sqlite3

import pytest

from grideditor.connection import connect
from grideditor.database import Database


SCHEMA = """
CREATE TABLE employees (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    FIRSTNAME VARCHAR(50),
    LASTNAME VARCHAR(50),
    EMAIL VARCHAR(100),
    STATUS VARCHAR(20),
    HIRED DATE,
    DEPT_ID INTEGER,
    PHOTO INTEGER
);
CREATE TABLE departments (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    NAME VARCHAR(50)
);
CREATE TABLE addresses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    EMPLOYEE_ID INTEGER,
    CITY VARCHAR(50)
);
CREATE TABLE access (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    NAME VARCHAR(50)
);
CREATE TABLE employee_access (
    employee_id INTEGER,
    access_id INTEGER
);
CREATE TABLE files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    FILENAME VARCHAR(255),
    FILESIZE INTEGER,
    CONTENT BLOB,
    WEBPATH VARCHAR(255),
    SYSTEMPATH VARCHAR(255)
);
"""

SEED = """
INSERT INTO departments (id, NAME) VALUES (1, 'Sales'), (2, 'Research');
INSERT INTO access (id, NAME) VALUES (1, 'Printer'), (2, 'Servers'), (3, 'Web');
INSERT INTO employees (id, FIRSTNAME, LASTNAME, EMAIL, STATUS, HIRED, DEPT_ID) VALUES
    (1, 'Ada', 'Lovelace', 'ada@example.com', 'active', '2012-03-09', 1),
    (2, 'Alan', 'Turing', 'alan@example.com', 'active', '2013-06-23', 2),
    (3, 'Grace', 'Hopper', 'grace@example.com', 'retired', '2010-12-09', 1);
INSERT INTO addresses (EMPLOYEE_ID, CITY) VALUES (1, 'London'), (2, 'Manchester');
INSERT INTO employee_access (employee_id, access_id) VALUES (1, 1), (1, 2), (2, 3), (3, 1), (3, 2), (3, 3);
"""


@pytest.fixture(scope="function")
def setup_db(request):
    """Setup a temporary file SQLite database for each test."""
    os.makedirs("/tmp/grideditor-tests", exist_ok=True)
    path = f"/tmp/grideditor-tests/test-{request.function.__module__}-{request.function.__name__}.sqlite3"
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    connect(f"sqlite:///{path}")
    yield path


@pytest.fixture(scope="function")
def seeded_db(setup_db):
    """Employees, departments, addresses, access rights (through a link table) and files."""
    conn = sqlite3.connect(setup_db)
    conn.executescript(SCHEMA)
    conn.executescript(SEED)
    conn.commit()
    conn.close()
    return setup_db


@pytest.fixture(scope="function")
def db(seeded_db):
    """Database on the seeded connection; closed after the test."""
    database = Database()
    yield database
    database.close()


@pytest.fixture(scope="function")
def fetch_all(seeded_db):
    """Read rows straight from the SQLite file, bypassing grideditor."""
    def fetch(sql, values=()):
        conn = sqlite3.connect(seeded_db)
        try:
            return conn.execute(sql, values).fetchall()
        finally:
            conn.close()
    return fetch
