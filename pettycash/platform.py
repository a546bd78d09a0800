import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

import requests
from fastapi import Request
from requests.adapters import HTTPAdapter

from pettycash.core.config import get_settings
from pettycash.core.errors import PlatformError
from pettycash.core.security import extract_access_token

logger = logging.getLogger(__name__)

# (column, operator, value) - operator is a PostgREST operator name.
Filter = Tuple[str, str, Any]


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _format_filter(column: str, op: str, value: Any) -> str:
    """Render one filter as PostgREST ``op.value`` (without the column)."""
    if op == "in":
        return f"in.({','.join(_format_value(v) for v in value)})"
    if op == "is":
        return f"is.{'null' if value is None else _format_value(value)}"
    return f"{op}.{_format_value(value)}"


class Query:
    """
    Table query builder.

    Collects the operation, filters and ordering for one table request and
    hands itself to an executor (the platform client, or a fake in tests)
    on ``execute()``. Filters are kept structured so an executor can
    evaluate them without parsing PostgREST syntax.
    """

    def __init__(self, executor, table: str):
        self._executor = executor
        self.table = table
        self.method = "GET"
        self.columns = "*"
        self.payload: Any = None
        self.on_conflict: Optional[str] = None
        self.filters: List[Filter] = []
        self.or_groups: List[List[Filter]] = []
        self.orders: List[Tuple[str, bool]] = []
        self.limit_count: Optional[int] = None
        self.cardinality: Optional[str] = None  # None, "single" or "maybe_single"
        self.returning = True

    def __repr__(self):
        return f"<Query {self.method} {self.table}>"

    # Operations

    def select(self, columns: str = "*") -> "Query":
        self.method = "GET"
        self.columns = "".join(columns.split())
        return self

    def insert(self, rows) -> "Query":
        self.method = "POST"
        self.payload = rows
        return self

    def upsert(self, rows, on_conflict: str = "id") -> "Query":
        self.method = "UPSERT"
        self.payload = rows
        self.on_conflict = on_conflict
        return self

    def update(self, values: dict) -> "Query":
        self.method = "PATCH"
        self.payload = values
        return self

    def delete(self) -> "Query":
        self.method = "DELETE"
        return self

    # Filters

    def eq(self, column: str, value: Any) -> "Query":
        if value is None:
            self.filters.append((column, "is", None))
        else:
            self.filters.append((column, "eq", value))
        return self

    def neq(self, column: str, value: Any) -> "Query":
        self.filters.append((column, "neq", value))
        return self

    def gte(self, column: str, value: Any) -> "Query":
        self.filters.append((column, "gte", value))
        return self

    def lte(self, column: str, value: Any) -> "Query":
        self.filters.append((column, "lte", value))
        return self

    def in_(self, column: str, values: Iterable[Any]) -> "Query":
        self.filters.append((column, "in", list(values)))
        return self

    def or_(self, *conditions: Filter) -> "Query":
        self.or_groups.append(list(conditions))
        return self

    # Modifiers

    def order(self, column: str, desc: bool = False) -> "Query":
        self.orders.append((column, desc))
        return self

    def limit(self, count: int) -> "Query":
        self.limit_count = count
        return self

    def single(self) -> "Query":
        self.cardinality = "single"
        return self

    def maybe_single(self) -> "Query":
        self.cardinality = "maybe_single"
        return self

    def params(self) -> List[Tuple[str, str]]:
        """
        Build the PostgREST query string parameters for this query.

        :return: List of (name, value) pairs, order preserved
        """
        params: List[Tuple[str, str]] = []
        if self.method == "GET" or self.returning:
            params.append(("select", self.columns))
        for column, op, value in self.filters:
            params.append((column, _format_filter(column, op, value)))
        for group in self.or_groups:
            rendered = ",".join(
                f"{column}.{_format_filter(column, op, value)}"
                for column, op, value in group
            )
            params.append(("or", f"({rendered})"))
        if self.orders:
            params.append((
                "order",
                ",".join(f"{col}.{'desc' if desc else 'asc'}" for col, desc in self.orders),
            ))
        if self.limit_count is not None:
            params.append(("limit", str(self.limit_count)))
        if self.method == "UPSERT" and self.on_conflict:
            params.append(("on_conflict", self.on_conflict))
        return params

    def execute(self):
        return self._executor.execute(self)


class PlatformClient:
    """
    Client for the external data/auth platform.

    Wraps three HTTP surfaces:
    - the REST data API (tables and stored procedures),
    - the auth API (token validation, password sign-in),
    - the auth admin API (service-role only user management).

    A client built with a user's access token issues table and RPC calls as
    that user, so the platform's row-level policies apply. A client built
    with the service-role key bypasses them.
    """

    def __init__(
            self,
            url: str,
            api_key: str,
            access_token: Optional[str] = None,
            timeout: float = 10.0,
            session: Optional[requests.Session] = None,
    ):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or _shared_session()

    def __repr__(self):
        return f"<PlatformClient {self.url} user={'yes' if self.access_token else 'no'}>"

    def with_token(self, access_token: str) -> "PlatformClient":
        """
        A client acting as the user who owns ``access_token``.
        """
        return PlatformClient(
            self.url, self.api_key, access_token=access_token,
            timeout=self.timeout, session=self.session,
        )

    # Request plumbing

    def _headers(self, token: Optional[str] = None, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {token or self.access_token or self.api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            logger.error(f"Platform request timed out: {method} {path}")
            raise PlatformError(
                f"Platform request timed out: {str(e)}", status_code=504
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Platform request failed: {method} {path}: {e}")
            raise PlatformError(
                f"Platform request failed: {str(e)}", status_code=503
            )

        if response.status_code >= 400:
            raise self._error_from_response(response)
        return response

    @staticmethod
    def _error_from_response(response: requests.Response) -> PlatformError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        message = (
            body.get("message")
            or body.get("msg")
            or body.get("error_description")
            or body.get("error")
            or response.text
            or f"Platform returned HTTP {response.status_code}"
        )
        code = body.get("code") if isinstance(body.get("code"), str) else body.get("error_code")
        status_code = response.status_code if response.status_code < 500 else 502
        return PlatformError(
            message,
            status_code=status_code,
            code=code,
            details=body.get("details") or body.get("hint"),
        )

    @staticmethod
    def _json(response: requests.Response):
        if not response.content:
            return None
        return response.json()

    # Data API

    def table(self, name: str) -> Query:
        return Query(self, name)

    def execute(self, query: Query):
        """
        Run a table query.

        :param query: Query built with ``table()``
        :return: Rows (list), a single row (dict), or None for an empty
            ``maybe_single`` read or a mutation without representation
        :raises PlatformError: On any non-2xx response
        """
        extra = {}
        prefer = []
        if query.method != "GET":
            prefer.append("return=representation" if query.returning else "return=minimal")
        if query.method == "UPSERT":
            prefer.append("resolution=merge-duplicates")
        if prefer:
            extra["Prefer"] = ",".join(prefer)
        if query.cardinality == "single":
            extra["Accept"] = "application/vnd.pgrst.object+json"

        method = "POST" if query.method == "UPSERT" else query.method
        response = self._request(
            method,
            f"/rest/v1/{query.table}",
            params=query.params(),
            json=query.payload if method in ("POST", "PATCH") else None,
            headers=self._headers(extra=extra),
        )
        data = self._json(response)

        if query.cardinality == "maybe_single":
            if not data:
                return None
            if isinstance(data, list):
                if len(data) > 1:
                    raise PlatformError(
                        "Multiple rows returned where at most one was expected",
                        code="PGRST116",
                    )
                return data[0]
        return data

    def rpc(self, function: str, params: Optional[dict] = None):
        """
        Invoke a stored procedure.

        :param function: Procedure name, e.g. "get_user_balance"
        :param params: Named arguments
        :return: The procedure's JSON result (scalar, object or list)
        """
        response = self._request(
            "POST",
            f"/rest/v1/rpc/{function}",
            json=params or {},
            headers=self._headers(),
        )
        return self._json(response)

    # Auth API

    def get_user(self, token: str) -> Optional[dict]:
        """
        Resolve an access token to its auth user.

        :return: Auth user dict, or None if the platform rejects the token
        """
        try:
            response = self._request("GET", "/auth/v1/user", headers=self._headers(token=token))
        except PlatformError as e:
            if e.status_code in (401, 403):
                logger.warning(f"get_user rejected token: {e.message}")
                return None
            raise
        return self._json(response)

    def sign_in_with_password(self, email: str, password: str) -> dict:
        """
        Exchange email/password for a session.

        :return: Session dict with access_token, refresh_token, user
        """
        response = self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(token=self.api_key),
        )
        return self._json(response)

    # Auth admin API (service-role key required)

    def admin_create_user(
            self,
            email: str,
            password: str,
            email_confirm: bool = True,
            user_metadata: Optional[dict] = None,
    ) -> dict:
        payload = {"email": email, "password": password, "email_confirm": email_confirm}
        if user_metadata:
            payload["user_metadata"] = user_metadata
        response = self._request(
            "POST", "/auth/v1/admin/users", json=payload, headers=self._headers(),
        )
        return self._json(response)

    def admin_delete_user(self, user_id: str) -> None:
        self._request("DELETE", f"/auth/v1/admin/users/{user_id}", headers=self._headers())

    def admin_get_user_by_id(self, user_id: str) -> Optional[dict]:
        response = self._request("GET", f"/auth/v1/admin/users/{user_id}", headers=self._headers())
        return self._json(response)


_session: Optional[requests.Session] = None


def _shared_session() -> requests.Session:
    global _session
    if _session is None:
        _session = requests.Session()
        _session.mount("https://", HTTPAdapter(pool_connections=4, pool_maxsize=16))
        _session.mount("http://", HTTPAdapter(pool_connections=4, pool_maxsize=16))
    return _session


def get_platform(request: Request) -> PlatformClient:
    """
    Dependency that provides a platform client scoped to the caller.

    Uses the caller's access token when one is present so row-level
    policies apply; otherwise the anonymous key.
    """
    settings = get_settings()
    return PlatformClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        access_token=extract_access_token(request),
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )


def get_admin_platform() -> PlatformClient:
    """
    Dependency that provides a service-role platform client.

    :raises PlatformError: If the service-role key is not configured
    """
    settings = get_settings()
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise PlatformError(
            "Platform service role key is not configured. Please set SUPABASE_SERVICE_ROLE_KEY in .env file",
            status_code=500,
        )
    return PlatformClient(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
    )
