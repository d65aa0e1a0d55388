"""Tests for the SQLite tools."""

import pytest

from mavens.tools import ToolRegistry
from mavens.tools.database import parse_target, register_database_tools
from mavens.tools.executor import ToolExecutor


def test_parse_target_variants(tmp_path):
    cwd = str(tmp_path)

    assert parse_target(":memory:") == ":memory:"
    assert parse_target("sqlite:///app.db", cwd) == str(tmp_path / "app.db")
    assert parse_target("sqlite:////srv/data/app.db", cwd) == "/srv/data/app.db"
    assert parse_target("data/shop.sqlite", cwd) == str(tmp_path / "data" / "shop.sqlite")

    with pytest.raises(ValueError):
        parse_target("postgres://localhost/app", cwd)


@pytest.fixture
def database():
    registry = ToolRegistry()
    table = register_database_tools(registry)
    yield ToolExecutor(registry)
    table.close_all()


@pytest.mark.asyncio
async def test_connect_query_and_list(database, workspace):
    connected = await database.run("db_connect", {"target": "sqlite:///shop.db", "cwd": str(workspace)})
    assert connected.success
    assert connected.data["name"] == "shop"
    assert (workspace / "shop.db").exists()

    created = await database.run("db_query", {"sql": "CREATE TABLE users (id INTEGER, name TEXT)"})
    assert created.success

    inserted = await database.run("db_query", {"sql": "INSERT INTO users VALUES (1, 'ada'), (2, 'linus')"})
    assert inserted.data["row_count"] == 2

    selected = await database.run("db_query", {"sql": "SELECT name FROM users ORDER BY id", "limit": 1})
    assert selected.data["columns"] == ["name"]
    assert selected.data["rows"] == [["ada"]]
    assert selected.data["row_count"] == 2
    assert "showing first 1" in selected.display_summary

    tables = await database.run("db_list_tables", {})
    assert tables.data["tables"] == ["users"]

    connections = await database.run("db_list_connections", {})
    assert [c["name"] for c in connections.data["connections"]] == ["shop"]


@pytest.mark.asyncio
async def test_query_without_connection_fails(database):
    result = await database.run("db_query", {"sql": "SELECT 1"})

    assert not result.success
    assert "open connections: none" in result.error


@pytest.mark.asyncio
async def test_sql_errors_are_reported(database):
    await database.run("db_connect", {"target": ":memory:"})

    result = await database.run("db_query", {"sql": "SELECT * FROM missing"})

    assert not result.success
    assert result.error.startswith("SQL error")


@pytest.mark.asyncio
async def test_ambiguous_connection_needs_a_name(database, workspace):
    await database.run("db_connect", {"target": "a.db", "cwd": str(workspace)})
    await database.run("db_connect", {"target": "b.db", "cwd": str(workspace)})

    ambiguous = await database.run("db_query", {"sql": "SELECT 1"})
    named = await database.run("db_query", {"sql": "SELECT 1 AS one", "connection": "b"})

    assert not ambiguous.success
    assert named.data["rows"] == [[1]]
