"""
テスト共通設定

Supabaseへの問い合わせを置き換えるインメモリのフェイククライアントを提供する。
"""
import os

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

import pytest

from app.schemas.profitability import AppointmentRecord, AppointmentStatus


class FakeAPIError(Exception):
    """postgrest.exceptions.APIError の代わり"""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.code = code


class FakeQuery:
    """PostgRESTのクエリビルダーを模したもの"""

    def __init__(self, client: "FakeSupabase", table: str):
        self.client = client
        self.table_name = table
        self.columns: Optional[str] = None
        self.filters: List[tuple] = []
        self.order_by: Optional[tuple] = None
        self.limit_count: Optional[int] = None

    def select(self, columns: str = "*"):
        self.columns = columns
        return self

    def gte(self, column: str, value: Any):
        self.filters.append(("gte", column, value))
        return self

    def lte(self, column: str, value: Any):
        self.filters.append(("lte", column, value))
        return self

    def eq(self, column: str, value: Any):
        self.filters.append(("eq", column, value))
        return self

    def order(self, column: str, desc: bool = False):
        self.order_by = (column, desc)
        return self

    def limit(self, count: int):
        self.limit_count = count
        return self

    def _matches(self, row: Dict[str, Any]) -> bool:
        for op, column, value in self.filters:
            current = row.get(column)
            if current is None:
                return False
            if op == "gte" and not current >= value:
                return False
            if op == "lte" and not current <= value:
                return False
            if op == "eq" and current != value:
                return False
        return True

    def execute(self):
        self.client.queries.append(self)
        error = self.client.errors.get(self.table_name)
        if error is not None:
            raise error

        rows = [row for row in self.client.tables.get(self.table_name, []) if self._matches(row)]
        if self.order_by:
            column, desc = self.order_by
            rows.sort(key=lambda row: row.get(column), reverse=desc)
        if self.limit_count is not None:
            rows = rows[: self.limit_count]
        return SimpleNamespace(data=rows)


class FakeSupabase:
    """テーブルごとの行データを保持するフェイクSupabaseクライアント"""

    def __init__(self, tables: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.tables = tables or {}
        self.errors: Dict[str, Exception] = {}
        self.queries: List[FakeQuery] = []

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def fail(self, table: str, message: str = "connection refused", code: str = "PGRST000"):
        self.errors[table] = FakeAPIError(message, code)


def appointment_row(
    appointment_id: str,
    day: str,
    treatment_id: Optional[str] = "soin-a",
    name: Optional[str] = "Peeling",
    price: Any = 100,
    status: str = "completed",
    consumed: Any = None,
) -> Dict[str, Any]:
    """soins を結合した appointments の行を作る"""
    soins = None if name is None and price is None else {"nom": name, "prix": price}
    return {
        "id": appointment_id,
        "date": day,
        "status": status,
        "treatment_id": treatment_id,
        "consumed_products": consumed,
        "soins": soins,
    }


def make_record(
    record_id: str,
    day: date,
    treatment_id: str = "soin-a",
    name: str = "Peeling",
    price: str = "100",
    status: AppointmentStatus = AppointmentStatus.COMPLETED,
) -> AppointmentRecord:
    return AppointmentRecord(
        id=record_id,
        date=day,
        status=status,
        treatment_id=treatment_id,
        treatment_name=name,
        treatment_price=Decimal(price),
    )


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def sample_records() -> List[AppointmentRecord]:
    """施術A 100€ ×2回、施術B 200€ ×1回"""
    return [
        make_record("apt-1", date(2026, 9, 3), "soin-a", "Peeling", "100"),
        make_record("apt-2", date(2026, 10, 2), "soin-a", "Peeling", "100"),
        make_record("apt-3", date(2026, 10, 9), "soin-b", "Laser", "200"),
    ]
