"""
Database Tools
==============

Tools for working with SQLite databases: open a named connection, run SQL
against it, list tables and known connections.

Connection targets:
    sqlite:///absolute/path/app.db
    /absolute/path/app.db            (.db, .sqlite, .sqlite3)
    :memory:

Each tool registry gets its own ConnectionTable, so connections opened in
one assistant never leak into another. sqlite3 calls are blocking; they run
in a worker thread, serialized per connection by a lock.
"""

import asyncio
import os
import sqlite3
import threading
from dataclasses import dataclass, field
from pathlib import Path

from mavens.tools import CancelSignal, Tool, ToolRegistry, ToolResult
from mavens.utils.logger import Logger

logger = Logger("DatabaseTools")

SQLITE_SUFFIXES = (".db", ".sqlite", ".sqlite3")
DEFAULT_ROW_LIMIT = 100


@dataclass
class Connection:
    name: str
    database: str
    handle: sqlite3.Connection
    lock: threading.Lock = field(default_factory=threading.Lock)

    def describe(self) -> dict:
        return {"name": self.name, "type": "sqlite", "database": self.database}


def parse_target(target: str, cwd: str | None = None) -> str:
    """
    Resolve a connection target to a SQLite database path.

    As with SQLAlchemy URLs, sqlite:///app.db is relative and
    sqlite:////srv/app.db is absolute. Relative paths resolve against cwd.

    Raises:
        ValueError: The target is not a SQLite URL or path
    """
    target = target.strip()
    if target == ":memory:":
        return target
    if target.startswith("sqlite:///"):
        path = target[len("sqlite:///"):]
    elif target.lower().endswith(SQLITE_SUFFIXES):
        path = target
    else:
        raise ValueError(f"Unsupported database target: {target} (only SQLite is supported)")

    if not os.path.isabs(path):
        path = os.path.join(cwd or os.getcwd(), path)
    return os.path.normpath(path)


class ConnectionTable:
    """
    Named SQLite connections owned by one tool registry.

    Example:
        table = ConnectionTable()
        conn = table.open("/tmp/app.db")
        columns, rows, count = table.run(conn.name, "SELECT 1", limit=10)
    """

    def __init__(self):
        self._connections: dict[str, Connection] = {}
        self._lock = threading.Lock()

    def open(self, database: str, name: str | None = None) -> Connection:
        name = name or ("memory" if database == ":memory:" else Path(database).stem)
        with self._lock:
            existing = self._connections.get(name)
            if existing and existing.database == database:
                return existing
            if existing:
                existing.handle.close()

            handle = sqlite3.connect(database, check_same_thread=False)
            connection = Connection(name=name, database=database, handle=handle)
            self._connections[name] = connection

        logger.info(f"Opened SQLite connection '{name}' to {database}")
        return connection

    def get(self, name: str) -> Connection | None:
        with self._lock:
            return self._connections.get(name)

    def only(self) -> Connection | None:
        """The single open connection, if exactly one exists."""
        with self._lock:
            if len(self._connections) == 1:
                return next(iter(self._connections.values()))
        return None

    def connections(self) -> list[Connection]:
        with self._lock:
            return list(self._connections.values())

    def run(self, name: str, sql: str, limit: int = DEFAULT_ROW_LIMIT) -> tuple[list[str], list[list], int]:
        """
        Execute SQL on a named connection.

        Returns:
            (column names, rows up to limit, affected/total row count)

        Raises:
            KeyError: Unknown connection
            sqlite3.Error: The statement failed
        """
        connection = self.get(name)
        if connection is None:
            raise KeyError(name)

        with connection.lock:
            cursor = connection.handle.cursor()
            try:
                cursor.execute(sql)
                if cursor.description is None:
                    connection.handle.commit()
                    return [], [], cursor.rowcount

                columns = [column[0] for column in cursor.description]
                rows = [list(row) for row in cursor.fetchmany(limit)]
                # Count the remainder without materializing it
                remaining = sum(1 for _ in cursor)
                return columns, rows, len(rows) + remaining
            finally:
                cursor.close()

    def close_all(self) -> None:
        with self._lock:
            for connection in self._connections.values():
                connection.handle.close()
            self._connections.clear()


def _format_rows(columns: list[str], rows: list[list]) -> str:
    if not columns:
        return ""
    lines = [" | ".join(columns), " | ".join("-" * len(c) for c in columns)]
    for row in rows:
        lines.append(" | ".join("NULL" if v is None else str(v) for v in row))
    return "\n".join(lines)


# ==============================================================================
# Tool Factories
# ==============================================================================

def create_database_tools(table: ConnectionTable) -> list[Tool]:
    """Build the database tools bound to one connection table."""

    def _resolve(params: dict) -> Connection | None:
        name = params.get("connection")
        return table.get(name) if name else table.only()

    async def _connect(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
        try:
            database = parse_target(params["target"], params.get("cwd"))
        except ValueError as e:
            return ToolResult.fail(str(e))

        if database != ":memory:" and not os.path.isdir(os.path.dirname(database)):
            return ToolResult.fail(f"Directory does not exist for database {database}")

        connection = await asyncio.to_thread(table.open, database, params.get("name"))
        return ToolResult.ok(
            content=f"Connected to SQLite database {database} as '{connection.name}'",
            display_summary=f"Connected '{connection.name}' ({Path(database).name})",
            data=connection.describe()
        )

    async def _query(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
        connection = _resolve(params)
        if connection is None:
            known = ", ".join(c.name for c in table.connections()) or "none"
            return ToolResult.fail(f"No matching database connection (open connections: {known})")

        sql = params["sql"].strip()
        limit = int(params.get("limit") or DEFAULT_ROW_LIMIT)
        try:
            columns, rows, count = await asyncio.to_thread(table.run, connection.name, sql, limit)
        except sqlite3.Error as e:
            return ToolResult.fail(f"SQL error: {e}", data={"connection": connection.name, "sql": sql})

        if columns:
            summary = f"{count} row(s) from '{connection.name}'"
            if count > len(rows):
                summary += f", showing first {len(rows)}"
            content = _format_rows(columns, rows)
        else:
            summary = f"Statement executed on '{connection.name}' ({count} row(s) affected)"
            content = summary

        return ToolResult.ok(
            content=content,
            display_summary=summary,
            data={
                "connection": connection.name,
                "sql": sql,
                "columns": columns,
                "rows": rows,
                "row_count": count,
            }
        )

    async def _list_tables(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
        connection = _resolve(params)
        if connection is None:
            return ToolResult.fail("No matching database connection")

        _, rows, _ = await asyncio.to_thread(
            table.run,
            connection.name,
            "SELECT name FROM sqlite_master WHERE type='table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
            1000,
        )
        tables = [row[0] for row in rows]
        return ToolResult.ok(
            content="\n".join(tables) or "No tables",
            display_summary=f"{len(tables)} table(s) in '{connection.name}'",
            data={"connection": connection.name, "tables": tables}
        )

    async def _list_connections(params: dict, cancel: CancelSignal | None = None) -> ToolResult:
        connections = [c.describe() for c in table.connections()]
        content = "\n".join(f"{c['name']}: {c['database']}" for c in connections)
        return ToolResult.ok(
            content=content or "No open database connections",
            display_summary=f"{len(connections)} open connection(s)",
            data={"connections": connections}
        )

    connection_param = {
        "type": "string",
        "description": "Connection name (optional when exactly one is open)"
    }

    return [
        Tool(
            name="db_connect",
            description="Open a SQLite database (sqlite:/// URL or .db/.sqlite path) under a connection name.",
            parameters={
                "type": "object",
                "properties": {
                    "target": {"type": "string", "description": "sqlite:///path, a database file path, or :memory:"},
                    "name": {"type": "string", "description": "Connection name (default: file stem)"},
                    "cwd": {"type": "string", "description": "Directory relative paths resolve against"}
                },
                "required": ["target"]
            },
            execute=_connect
        ),
        Tool(
            name="db_query",
            description="Run a SQL statement on an open connection and return the rows.",
            parameters={
                "type": "object",
                "properties": {
                    "sql": {"type": "string", "description": "The SQL statement"},
                    "connection": connection_param,
                    "limit": {"type": "integer", "description": "Maximum rows to return (default: 100)"}
                },
                "required": ["sql"]
            },
            execute=_query
        ),
        Tool(
            name="db_list_tables",
            description="List the tables of an open connection.",
            parameters={
                "type": "object",
                "properties": {"connection": connection_param},
                "required": []
            },
            execute=_list_tables
        ),
        Tool(
            name="db_list_connections",
            description="List open database connections.",
            parameters={"type": "object", "properties": {}, "required": []},
            execute=_list_connections
        ),
    ]


def register_database_tools(registry: ToolRegistry, table: ConnectionTable | None = None) -> ConnectionTable:
    """
    Register the database tools with a registry.

    Returns:
        The connection table the tools are bound to
    """
    table = table or ConnectionTable()
    for tool in create_database_tools(table):
        registry.register(tool)

    logger.debug("Database tools registered")
    return table
