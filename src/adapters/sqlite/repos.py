import json
import logging
import re
import sqlite3
from dataclasses import replace
from typing import Any

from src.components.nice_urls import ParamMap, Rule, params_from_json, params_to_json

logger = logging.getLogger(__name__)

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


# Helper to convert sqlite rows to dicts
def dict_factory(cursor: sqlite3.Cursor, row: Any) -> dict[str, Any]:
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d


class SQLiteRuleRepo:
    def __init__(self, db_path: str):
        self.db_path = db_path

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        conn.execute("PRAGMA foreign_keys = ON;")
        return conn

    def save(self, rule: Rule) -> Rule:
        conn = self._get_conn()
        try:
            values = (
                rule.pattern,
                rule.template,
                rule.readable,
                json.dumps(params_to_json(rule.forward_params)),
                json.dumps(params_to_json(rule.inverse_params)),
                rule.enabled,
                rule.priority,
                rule.notes,
            )
            if rule.id is None:
                cursor = conn.execute(
                    """
                    INSERT INTO nice_url_rules (
                        pattern, template, readable, forward_params,
                        inverse_params, enabled, priority, notes
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                    values,
                )
                conn.commit()
                return replace(rule, id=cursor.lastrowid)

            conn.execute(
                """
                INSERT INTO nice_url_rules (
                    id, pattern, template, readable, forward_params,
                    inverse_params, enabled, priority, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    pattern=excluded.pattern,
                    template=excluded.template,
                    readable=excluded.readable,
                    forward_params=excluded.forward_params,
                    inverse_params=excluded.inverse_params,
                    enabled=excluded.enabled,
                    priority=excluded.priority,
                    notes=excluded.notes
            """,
                (rule.id, *values),
            )
            conn.commit()
            return rule
        finally:
            conn.close()

    def get_by_id(self, rule_id: int) -> Rule | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM nice_url_rules WHERE id = ?", (rule_id,)).fetchone()
            if not row:
                return None
            return self._map_row(row)
        finally:
            conn.close()

    def list_enabled(self) -> list[Rule]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM nice_url_rules WHERE enabled = 1 ORDER BY priority DESC, id ASC"
            ).fetchall()
            return [rule for rule in map(self._map_row, rows) if rule.enabled]
        finally:
            conn.close()

    def list_all(self) -> list[Rule]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM nice_url_rules ORDER BY priority DESC, id ASC"
            ).fetchall()
            return [self._map_row(r) for r in rows]
        finally:
            conn.close()

    def delete(self, rule_id: int) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM nice_url_rules WHERE id = ?", (rule_id,))
            conn.commit()
        finally:
            conn.close()

    def _map_row(self, row: dict[str, Any]) -> Rule:
        forward_params, forward_ok = self._load_params(row, "forward_params")
        inverse_params, inverse_ok = self._load_params(row, "inverse_params")
        return Rule(
            id=row["id"],
            pattern=row["pattern"],
            template=row["template"],
            readable=row["readable"],
            forward_params=forward_params,
            inverse_params=inverse_params,
            # A rule with unreadable params stays listable but never routes
            enabled=bool(row["enabled"]) and forward_ok and inverse_ok,
            priority=float(row["priority"]),
            notes=row["notes"],
        )

    def _load_params(self, row: dict[str, Any], column: str) -> tuple[ParamMap, bool]:
        try:
            return params_from_json(json.loads(row[column] or "{}")), True
        except (ValueError, TypeError, KeyError) as e:
            logger.warning("Rule %s has unreadable %s, disabling it: %s", row["id"], column, e)
            return {}, False


class SQLiteLookup:
    """Field lookups against application tables for the ``db`` conversion."""

    def __init__(self, db_path: str, allowed_tables: frozenset[str] | None = None):
        self.db_path = db_path
        self.allowed_tables = allowed_tables

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = dict_factory
        return conn

    def get_field(self, table: str, output_field: str, input_field: str, value: str) -> Any | None:
        # Identifiers cannot be bound as parameters, so only plain names are accepted
        if not all(_IDENTIFIER.match(name) for name in (table, output_field, input_field)):
            return None
        if self.allowed_tables is not None and table not in self.allowed_tables:
            return None

        conn = self._get_conn()
        try:
            row = conn.execute(
                f'SELECT "{output_field}" AS value FROM "{table}" '
                f'WHERE "{input_field}" = ? COLLATE NOCASE LIMIT 1',
                (value,),
            ).fetchone()
            return row["value"] if row else None
        finally:
            conn.close()
