"""
Database Agent
==============

SQLite connections and queries:

    "connect to sqlite:///app.db"             -> db_connect
    "open database data/app.db"               -> db_connect
    "select * from users limit 5"             -> db_query
    "query app.db: SELECT count(*) FROM t"    -> db_connect, db_query
    "show tables"                             -> db_list_tables
    "list database connections"               -> db_list_connections

A query only matches when the message actually contains SQL, so "update
the readme" is not mistaken for an UPDATE statement.
"""

import re
from typing import Sequence

from mavens.models import AgentResult, Category, ContextEntry, Intent, IntentMatch, Request
from mavens.specialists.base import SpecializedAgent
from mavens.tools import CancelSignal
from mavens.tools.executor import ToolCall, ToolCallResult

TARGET_PATTERN = re.compile(
    r"(?P<target>sqlite:///[^\s`'\"]+|:memory:|[^\s`'\"]+\.(?:db|sqlite3?))(?![\w.])",
    re.IGNORECASE,
)

SQL_PATTERN = re.compile(
    r"`(?P<quoted>[^`]+)`"
    r"|(?P<bare>\b(?:select\s+.+?\s+from\b|select\s+\d|insert\s+into\b|update\s+\w+\s+set\b|delete\s+from\b"
    r"|create\s+(?:table|index|view)\b|drop\s+(?:table|index|view)\b|alter\s+table\b|pragma\s+\w|with\s+\w+\s+as\s*\().*)",
    re.IGNORECASE | re.DOTALL,
)

NAME_PATTERN = re.compile(r"\b(?:as|named|called)\s+[`'\"]?(?P<name>\w+)", re.IGNORECASE)

SQL_KEYWORDS = ("select", "insert", "update", "delete", "create", "drop", "alter", "pragma", "with")


def extract_sql(message: str) -> str | None:
    """The SQL statement in a message (backticked, or from its first keyword on)."""
    for found in SQL_PATTERN.finditer(message):
        if found.group("quoted"):
            sql = found.group("quoted").strip()
            if sql.lower().startswith(SQL_KEYWORDS):
                return sql
            continue
        return found.group("bare").strip().rstrip(";").strip() + ";"
    return None


class DatabaseAgent(SpecializedAgent):
    """SQLite connection management and SQL execution."""

    agent_id = "database"
    category = Category.DATABASE
    intents = (
        Intent("connect", ("connect", "connect to", "open database", "open db", "use database"), 0.8),
        Intent(
            "query",
            ("select", "insert", "update", "delete", "query", "sql", "create table", "drop table", "pragma"),
            0.85,
        ),
        Intent("tables", ("tables", "list tables", "show tables", "schema"), 0.8),
        Intent("connections", ("connections", "database connections", "list connections", "databases"), 0.8),
    )

    def intent_applies(self, intent: Intent, request: Request, tokens: list[str]) -> bool:
        if intent.name == "connect":
            return TARGET_PATTERN.search(request.message) is not None
        if intent.name == "query":
            return extract_sql(request.message) is not None
        return True

    async def run(
        self,
        request: Request,
        match: IntentMatch,
        cancel: CancelSignal | None,
        history: Sequence[ContextEntry]
    ) -> AgentResult:
        intents = list(match.intents)
        target = TARGET_PATTERN.search(request.message)
        executed = []

        # A database named alongside a query or table listing is opened first
        connection = None
        if target and ("connect" in intents or "query" in intents or "tables" in intents):
            params = {"target": target.group("target"), "cwd": request.working_directory}
            name = NAME_PATTERN.search(request.message[target.end():])
            if name:
                params["name"] = name.group("name")
            connect = await self.tools.execute_one(ToolCall("db_connect", params), cancel)
            executed.append(connect)
            if not connect.result.success:
                return self._summarize(executed, expected=1)
            connection = connect.result.data["name"]

        calls = []
        for intent in intents:
            if intent == "query":
                calls.append(ToolCall("db_query", {"sql": extract_sql(request.message)}))
            elif intent == "tables":
                calls.append(ToolCall("db_list_tables", {}))
            elif intent == "connections":
                calls.append(ToolCall("db_list_connections", {}))

        if not calls and not executed:
            return self.failure(
                "database: tell me which database to open, e.g. \"connect to sqlite:///app.db\"",
                {"kind": "missing_argument", "argument": "target"},
            )

        if connection:
            for call in calls:
                if call.name != "db_list_connections":
                    call.arguments["connection"] = connection

        expected = len(executed) + len(calls)
        executed.extend(await self.tools.execute_all(calls, cancel, stop_on_failure=True))
        return self._summarize(executed, expected)

    def _summarize(self, executed: list[ToolCallResult], expected: int) -> AgentResult:
        records = []
        lines = []
        for call in executed:
            result = call.result
            data = result.data if isinstance(result.data, dict) else {}
            records.append({"operation": call.name.removeprefix("db_"), **data})
            if result.success:
                body = result.content.strip()
                lines.append(result.display_summary if body in ("", result.display_summary) else f"{result.display_summary}\n{body}")
            else:
                lines.append(f"database: {result.error}")

        failed = next((c for c in executed if not c.result.success), None)
        if failed is not None or len(executed) < expected:
            return self.failure(
                "\n".join(lines) or "database: aborted",
                {
                    "kind": "database_error",
                    "operation": failed.name if failed else None,
                    "message": failed.result.error if failed else "aborted",
                },
                records,
            )
        return self.success("\n".join(lines), records)
