"""
Pytest configuration and shared fixtures.

The platform is replaced by an in-memory fake that evaluates the same
Query objects the real client turns into REST calls.
"""
import os

os.environ.setdefault("SUPABASE_URL", "http://platform.test")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-for-testing-only")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")

import copy
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from pettycash.core.config import get_settings
from pettycash.core.errors import PlatformError
from pettycash.main import app
from pettycash.platform import Query, get_admin_platform, get_platform

ADMIN_ID = "00000000-0000-0000-0000-00000000a001"
SUPERADMIN_ID = "00000000-0000-0000-0000-00000000a002"
USER_ID = "00000000-0000-0000-0000-00000000b001"
OTHER_USER_ID = "00000000-0000-0000-0000-00000000b002"


def make_token(user_id: str, email: str = None, expires_in: int = 3600, secret: str = None) -> str:
    """
    Issue a platform-style access token for tests.
    """
    settings = get_settings()
    claims = {
        "sub": user_id,
        "aud": settings.JWT_AUDIENCE,
        "role": "authenticated",
        "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
    }
    if email:
        claims["email"] = email
    return jwt.encode(claims, secret or settings.SUPABASE_JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user_id: str, email: str = None) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id, email)}"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _matches(row: dict, column: str, op: str, value) -> bool:
    current = row.get(column)
    if op == "eq":
        return current == value
    if op == "neq":
        return current != value
    if op == "is":
        return current is value
    if op == "in":
        return current in value
    if current is None:
        return False
    if op == "gte":
        return current >= value
    if op == "lte":
        return current <= value
    raise AssertionError(f"Unsupported filter operator {op}")


class FakePlatform:
    """
    In-memory stand-in for PlatformClient.

    Tables are lists of dicts. RPCs dispatch to ``rpc_<name>`` methods or
    to handlers registered in ``rpc_handlers``. Any table operation can be
    made to fail via ``fail(table, method)``.
    """

    def __init__(self):
        self.tables = {
            "users": [],
            "wallets": [],
            "expenses": [],
            "expense_edit_history": [],
            "fund_transactions": [],
        }
        self.balances = {}
        self.wallet_balances = {}
        self.auth_users = {}
        self.rpc_handlers = {}
        self.rpc_calls = []
        self.queries = []
        self.deleted_auth_users = []
        self.failures = {}
        self.auth_failures = {}
        self.access_token = None
        self.tokens = {}

    # Setup helpers

    def add_user(self, user_id, username, role="user", email=None, password="secret123", created_by=None):
        email = email or f"{username}@example.com"
        self.auth_users[user_id] = {"id": user_id, "email": email, "password": password}
        self.tables["users"].append({
            "id": user_id,
            "username": username,
            "role": role,
            "display_name": None,
            "avatar_url": None,
            "created_by": created_by,
            "created_at": "2024-01-01T00:00:00+00:00",
            "updated_at": "2024-01-01T00:00:00+00:00",
        })
        return user_id

    def add_row(self, table, **row):
        row.setdefault("id", str(uuid.uuid4()))
        self.tables[table].append(row)
        return row

    def fail(self, table, method, message="boom", code=None, status_code=400):
        self.failures[(table, method)] = PlatformError(message, status_code=status_code, code=code)

    def rows(self, table):
        return self.tables[table]

    # PlatformClient surface

    def with_token(self, access_token):
        self.access_token = access_token
        return self

    def table(self, name):
        return Query(self, name)

    def execute(self, query: Query):
        self.queries.append(query)
        failure = self.failures.get((query.table, query.method))
        if failure is not None:
            raise failure

        rows = self.tables.setdefault(query.table, [])

        if query.method in ("POST", "UPSERT"):
            payload = query.payload if isinstance(query.payload, list) else [query.payload]
            result = []
            for item in payload:
                item = dict(item)
                existing = None
                if query.method == "UPSERT":
                    key = query.on_conflict or "id"
                    existing = next((r for r in rows if r.get(key) == item.get(key)), None)
                if existing is not None:
                    existing.update(item)
                    result.append(existing)
                else:
                    item.setdefault("id", str(uuid.uuid4()))
                    item.setdefault("created_at", _now())
                    if query.table == "expense_edit_history":
                        item.setdefault("edited_at", _now())
                    rows.append(item)
                    result.append(item)
            return self._shape(query, copy.deepcopy(result))

        selected = [r for r in rows if self._selected(query, r)]

        if query.method == "PATCH":
            for row in selected:
                row.update(query.payload)
            return self._shape(query, copy.deepcopy(selected))

        if query.method == "DELETE":
            self.tables[query.table] = [r for r in rows if r not in selected]
            return self._shape(query, copy.deepcopy(selected))

        for column, desc in reversed(query.orders):
            selected = sorted(
                selected,
                key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else ""),
                reverse=desc,
            )
        if query.limit_count is not None:
            selected = selected[:query.limit_count]
        return self._shape(query, copy.deepcopy(selected))

    @staticmethod
    def _selected(query: Query, row: dict) -> bool:
        if not all(_matches(row, c, op, v) for c, op, v in query.filters):
            return False
        return all(
            any(_matches(row, c, op, v) for c, op, v in group)
            for group in query.or_groups
        )

    @staticmethod
    def _shape(query: Query, rows: list):
        if query.cardinality == "single":
            if len(rows) != 1:
                raise PlatformError(
                    "JSON object requested, multiple (or no) rows returned",
                    status_code=406,
                    code="PGRST116",
                )
            return rows[0]
        if query.cardinality == "maybe_single":
            if len(rows) > 1:
                raise PlatformError("Multiple rows returned", code="PGRST116")
            return rows[0] if rows else None
        return rows

    def rpc(self, function, params=None):
        params = params or {}
        self.rpc_calls.append((function, params))
        handler = self.rpc_handlers.get(function) or getattr(self, f"rpc_{function}", None)
        if handler is None:
            raise PlatformError(f"Could not find the function {function}", status_code=404, code="PGRST202")
        return handler(params)

    # Default stored procedures

    def rpc_get_user_balance(self, params):
        return self.balances.get(params["target_user_id"])

    def rpc_get_user_fund_transactions(self, params):
        rows = [r for r in self.tables["fund_transactions"] if r["user_id"] == params["target_user_id"]]
        rows.sort(key=lambda r: r.get("created_at") or "", reverse=True)
        return copy.deepcopy(rows[:params["limit_count"]])

    def rpc_add_user_funds(self, params):
        target = params["target_user_id"]
        profile = next((u for u in self.tables["users"] if u["id"] == target), None)
        if profile is None:
            return "Error: User not found"
        if profile.get("created_by") != params["admin_user_id"]:
            return "Error: You can only add funds to users you created"
        previous = self.balances.get(target, 0)
        self.balances[target] = previous + params["amount"]
        self.add_row(
            "fund_transactions",
            user_id=target,
            admin_id=params["admin_user_id"],
            transaction_type="fund_in",
            amount=params["amount"],
            previous_balance=previous,
            new_balance=self.balances[target],
            description=params["description"],
            created_at=_now(),
        )
        return f"Successfully added {params['amount']} to user balance"

    def rpc_get_admin_users_with_balances(self, params):
        return [
            {
                "user_id": u["id"],
                "username": u["username"],
                "role": u["role"],
                "balance": self.balances.get(u["id"], 0),
                "created_at": u["created_at"],
                "wallets": [],
            }
            for u in self.tables["users"]
            if u.get("created_by") == params["admin_id"]
        ]

    def rpc_initialize_user_balance(self, params):
        self.balances.setdefault(params["target_user_id"], 0)
        return None

    def rpc_get_wallet_balance(self, params):
        return self.wallet_balances.get(params["target_wallet_id"], 0)

    def rpc_admin_create_wallet(self, params):
        return self.add_row(
            "wallets",
            user_id=params["p_user_id"],
            currency=params["p_currency"],
            name=params["p_name"],
            is_default=params["p_is_default"],
            created_at=_now(),
        )

    # Auth API

    def get_user(self, token):
        user_id = self.tokens.get(token)
        if not user_id:
            return None
        user = self.auth_users[user_id]
        return {"id": user["id"], "email": user["email"]}

    def sign_in_with_password(self, email, password):
        user = next(
            (u for u in self.auth_users.values() if u["email"] == email and u["password"] == password),
            None,
        )
        if user is None:
            raise PlatformError("Invalid login credentials", status_code=400, code="invalid_credentials")
        return {
            "access_token": make_token(user["id"], user["email"]),
            "token_type": "bearer",
            "expires_in": 3600,
            "user": {"id": user["id"], "email": user["email"]},
        }

    # Auth admin API

    def admin_create_user(self, email, password, email_confirm=True, user_metadata=None):
        failure = self.auth_failures.get("create")
        if failure is not None:
            raise failure
        if any(u["email"] == email for u in self.auth_users.values()):
            raise PlatformError("A user with this email address has already been registered", status_code=422)
        user_id = str(uuid.uuid4())
        self.auth_users[user_id] = {"id": user_id, "email": email, "password": password}
        return {"id": user_id, "email": email, "user_metadata": user_metadata or {}}

    def admin_delete_user(self, user_id):
        if user_id not in self.auth_users:
            raise PlatformError("User not found", status_code=404, code="user_not_found")
        del self.auth_users[user_id]
        self.deleted_auth_users.append(user_id)
        self.tables["users"] = [u for u in self.tables["users"] if u["id"] != user_id]

    def admin_get_user_by_id(self, user_id):
        failure = self.auth_failures.get("get")
        if failure is not None:
            raise failure
        if user_id not in self.auth_users:
            raise PlatformError("User not found", status_code=404)
        user = self.auth_users[user_id]
        return {"user": {"id": user["id"], "email": user["email"]}}


@pytest.fixture(scope="function")
def platform():
    """
    A fake platform seeded with one superadmin, one admin and two users
    created by the admin.
    """
    fake = FakePlatform()
    fake.add_user(SUPERADMIN_ID, "root", role="superadmin")
    fake.add_user(ADMIN_ID, "alice", role="admin", created_by=SUPERADMIN_ID)
    fake.add_user(USER_ID, "bob", created_by=ADMIN_ID)
    fake.add_user(OTHER_USER_ID, "carol", created_by=ADMIN_ID)
    return fake


@pytest.fixture(scope="function")
def client(platform):
    """
    Create a test client with platform dependency overrides.
    """
    app.dependency_overrides[get_platform] = lambda: platform
    app.dependency_overrides[get_admin_platform] = lambda: platform

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def user_headers():
    return auth_headers(USER_ID, "bob@example.com")


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, "alice@example.com")


@pytest.fixture
def superadmin_headers():
    return auth_headers(SUPERADMIN_ID, "root@example.com")
