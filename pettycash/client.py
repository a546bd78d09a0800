"""HTTP client for the petty cash API.

Mirrors what a UI component needs from a fetch: the payload, an error
message, whether the request is still in flight, and whether the caller
should be sent to the login screen.
"""

import logging
from typing import Any, Callable, Dict, Optional

import requests
from pydantic import BaseModel

logger = logging.getLogger(__name__)

# Filter values that mean "no filter".
_UNSET_FILTERS = (None, "", "all")

# Client-side keyword to API query parameter.
_FILTER_PARAMS = {
    "all_users": "allUsers",
    "date_from": "dateFrom",
    "date_to": "dateTo",
    "category": "category",
    "min_amount": "minAmount",
    "max_amount": "maxAmount",
    "wallet_id": "walletId",
}


class ResourceState(BaseModel):
    """
    Outcome of one fetch.
    """
    data: Any = None
    error: Optional[str] = None
    loading: bool = False
    requires_login: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.requires_login


def build_params(filters: Dict[str, Any]) -> Dict[str, str]:
    """
    Translate filter keywords to query parameters, dropping unset ones.

    :param filters: e.g. {"date_from": "2024-01-01", "category": "all"}
    :return: e.g. {"dateFrom": "2024-01-01"}
    """
    params = {}
    for key, value in filters.items():
        if value in _UNSET_FILTERS:
            continue
        name = _FILTER_PARAMS.get(key, key)
        if isinstance(value, bool):
            value = "true" if value else "false"
        params[name] = str(value)
    return params


class PettyCashClient:
    """
    Client for the petty cash route handlers.
    """

    def __init__(
            self,
            base_url: str,
            token: Optional[str] = None,
            timeout: float = 10.0,
            session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def fetch(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        auth_check: bool = False,
        on_state: Optional[Callable[[ResourceState], None]] = None,
    ) -> ResourceState:
        """
        GET a route and capture the outcome.

        :param path: Route path, e.g. "/api/balance"
        :param params: Filters; None and "all" values are dropped
        :param auth_check: Treat a timeout as a lost session
        :param on_state: Called with a ``loading=True`` state before the
            request goes out, then with the settled state
        :return: ResourceState with data on success, error otherwise.
            ``requires_login`` is set on 401, and on timeout when
            ``auth_check`` is true.
        """
        if on_state is not None:
            on_state(ResourceState(loading=True))
        state = self._request(path, params, auth_check)
        if on_state is not None:
            on_state(state)
        return state

    def _request(self, path: str, params: Optional[Dict[str, Any]], auth_check: bool) -> ResourceState:
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                params=build_params(params or {}),
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning(f"Request to {path} timed out")
            return ResourceState(error="Request timed out", requires_login=auth_check)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request to {path} failed: {e}")
            return ResourceState(error=str(e))

        try:
            body = response.json()
        except ValueError:
            body = None

        if response.status_code == 401:
            return ResourceState(error=_error_message(body, response), requires_login=True)
        if not response.ok:
            return ResourceState(error=_error_message(body, response))

        # Admin routes wrap their payload in a success envelope.
        if isinstance(body, dict) and body.get("success") is True and "data" in body:
            body = body["data"]
        return ResourceState(data=body)

    def balance(self) -> ResourceState:
        return self.fetch("/api/balance")

    def fund_transactions(self, **filters) -> ResourceState:
        return self.fetch("/api/transactions/funds", filters)

    def expenses(self, **filters) -> ResourceState:
        return self.fetch("/api/transactions/expenses", filters)

    def profile(self) -> ResourceState:
        return self.fetch("/api/profile", auth_check=True)

    def admin_users(self) -> ResourceState:
        return self.fetch("/api/admin/users-with-balances", auth_check=True)


def _error_message(body: Any, response: requests.Response) -> str:
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return f"HTTP {response.status_code}"
