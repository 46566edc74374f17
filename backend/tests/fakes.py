"""In-memory stand-in for the parts of the Supabase client the services use."""
from __future__ import annotations

import copy
import itertools
from decimal import Decimal, InvalidOperation
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Optional


def _as_number(value: Any) -> Optional[Decimal]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _matches(row_value: Any, expected: Any) -> bool:
    # Postgres compares numeric columns by value, so "10.00" == 10
    left, right = _as_number(row_value), _as_number(expected)
    if left is not None and right is not None:
        return left == right
    return row_value == expected


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str) -> None:
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.row_limit: Optional[int] = None
        self.single_mode: Optional[str] = None
        self.upsert_conflict: Optional[str] = None
        self.ignore_duplicates = False

    # builders
    def select(self, *_columns, **_kwargs) -> "FakeQuery":
        return self

    def insert(self, payload) -> "FakeQuery":
        self.op, self.payload = "insert", payload
        return self

    def update(self, payload) -> "FakeQuery":
        self.op, self.payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None, ignore_duplicates: bool = False) -> "FakeQuery":
        self.op, self.payload = "upsert", payload
        self.upsert_conflict = on_conflict
        self.ignore_duplicates = ignore_duplicates
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append((column, value))
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.order_by = (column, desc)
        return self

    def limit(self, count: int) -> "FakeQuery":
        self.row_limit = count
        return self

    def maybe_single(self) -> "FakeQuery":
        self.single_mode = "maybe"
        return self

    def single(self) -> "FakeQuery":
        self.single_mode = "single"
        return self

    def execute(self) -> SimpleNamespace:
        self.db.calls.append((self.table_name, self.op, list(self.filters), copy.deepcopy(self.payload)))
        failure = self.db.failures.get((self.table_name, self.op))
        if failure:
            raise failure

        handler = getattr(self, f"_{self.op}")
        data = handler()
        if self.single_mode and self.op == "select":
            if not data:
                if self.single_mode == "single":
                    raise LookupError(f"No rows in {self.table_name}")
                return SimpleNamespace(data=None, count=0)
            return SimpleNamespace(data=data[0], count=1)
        return SimpleNamespace(data=data, count=len(data))

    # operations
    def _filtered(self) -> List[Dict[str, Any]]:
        rows = self.db.tables.setdefault(self.table_name, [])
        return [r for r in rows if all(_matches(r.get(c), v) for c, v in self.filters)]

    def _select(self) -> List[Dict[str, Any]]:
        rows = [copy.deepcopy(r) for r in self._filtered()]
        if self.order_by:
            column, desc = self.order_by
            rows.sort(key=lambda r: (r.get(column) is None, str(r.get(column))), reverse=desc)
        if self.row_limit is not None:
            rows = rows[: self.row_limit]
        return rows

    def _insert(self) -> List[Dict[str, Any]]:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for item in payload:
            row = dict(item)
            row.setdefault("id", self.db.next_id())
            self.db.tables.setdefault(self.table_name, []).append(row)
            inserted.append(copy.deepcopy(row))
        return inserted

    def _update(self) -> List[Dict[str, Any]]:
        if self.db.before_update:
            self.db.before_update(self.table_name, self.filters, self.payload)
        updated = []
        for row in self._filtered():
            row.update(self.payload)
            updated.append(copy.deepcopy(row))
        return updated

    def _upsert(self) -> List[Dict[str, Any]]:
        payload = self.payload if isinstance(self.payload, list) else [self.payload]
        keys = [k.strip() for k in (self.upsert_conflict or "id").split(",")]
        rows = self.db.tables.setdefault(self.table_name, [])
        result = []
        for item in payload:
            existing = next(
                (r for r in rows if all(k in item and _matches(r.get(k), item[k]) for k in keys)),
                None,
            )
            if existing is None:
                row = dict(item)
                row.setdefault("id", self.db.next_id())
                rows.append(row)
                result.append(copy.deepcopy(row))
            elif not self.ignore_duplicates:
                existing.update(item)
                result.append(copy.deepcopy(existing))
        return result

    def _delete(self) -> List[Dict[str, Any]]:
        doomed = self._filtered()
        self.db.tables[self.table_name] = [r for r in self.db.tables[self.table_name] if r not in doomed]
        return doomed


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]) -> None:
        self.db, self.name, self.params = db, name, params

    def execute(self) -> SimpleNamespace:
        self.db.calls.append(("rpc", self.name, [], self.params))
        handler = self.db.rpc_handlers.get(self.name)
        if handler is None:
            raise LookupError(f"No fake RPC registered for {self.name}")
        return SimpleNamespace(data=handler(self.params))


class FakeSupabase:
    """Tables are lists of dict rows; RPCs are plain callables."""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = copy.deepcopy(tables or {})
        self.rpc_handlers: Dict[str, Callable[[Dict[str, Any]], Any]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self.before_update: Optional[Callable[[str, list, dict], None]] = None
        self._ids = itertools.count(1000)

    def next_id(self) -> str:
        return str(next(self._ids))

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Optional[Dict[str, Any]] = None) -> FakeRpc:
        return FakeRpc(self, name, params or {})

    def fail(self, table: str, op: str, error: Optional[Exception] = None) -> None:
        self.failures[(table, op)] = error or RuntimeError(f"{table}.{op} failed")

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.get(table, [])


def credit_row(user_id: str = "user-1", balance: str = "10.00", **overrides) -> Dict[str, Any]:
    """A user_credits row with the default thresholds (warning 10, critical 5)."""
    row = {
        "user_id": user_id,
        "current_balance": balance,
        "warning_threshold": "10.00",
        "critical_threshold": "5.00",
        "is_blocked": Decimal(balance) <= 0,
        "updated_at": None,
    }
    row.update(overrides)
    return row
