"""Low-level HTTP client for the Brivo OnAir API.

Handles authentication, token management, rate gating and HTTP operations.
"""
from __future__ import annotations
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

import requests

from ..tokens import AccessToken, TokenHolder, TokenRefreshError
from .exceptions import BrivoAPIError, DuplicateResourceError, TokenExpiredError

if TYPE_CHECKING:
    from ..orchestration.gate import ConcurrencyGate

REQUEST_TIMEOUT = 10
DEFAULT_API_URL = "https://api.brivo.com/v1/api"
DEFAULT_AUTH_URL = "https://auth.brivo.com/oauth/token"

# Brivo reports some conflicts as 400 with a message such as
# "Duplicate Credential Found" instead of a 409.
DUPLICATE_MARKER = "duplicate"

logger = logging.getLogger(__name__)


class BrivoTokenHolder(TokenHolder):
    """OAuth token for Brivo (password grant first, refresh-token grant after).

    Usage:
        tokens = BrivoTokenHolder("alice", "secret", "client-id", "client-secret", "api-key")
        tokens.refresh()
    """

    def __init__(
        self,
        username: str,
        password: str,
        client_id: str,
        client_secret: str,
        api_key: str,
        auth_url: str = DEFAULT_AUTH_URL,
        gate: Optional[ConcurrencyGate] = None,
    ):
        super().__init__("Brivo", gate=gate)
        self.username = username
        self.password = password
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_key = api_key
        self.auth_url = auth_url

    def _fetch(self, current: Optional[AccessToken]) -> AccessToken:
        if current is not None and current.refresh_token:
            params = {"grant_type": "refresh_token", "refresh_token": current.refresh_token}
        else:
            params = {"grant_type": "password", "username": self.username, "password": self.password}

        resp = requests.post(
            self.auth_url,
            params=params,
            auth=(self.client_id, self.client_secret),
            headers={"api-key": self.api_key, "Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
        if resp.status_code != 200:
            raise TokenRefreshError(self.system, f"[{resp.status_code}] {resp.text}")
        body = resp.json()
        return AccessToken.from_lifetime(
            body["access_token"],
            body.get("expires_in", 60),
            refresh_token=body.get("refresh_token", ""),
        )


class BrivoClient:
    """HTTP client for the Brivo OnAir API.

    Features:
    - One concurrency gate slot per HTTP call
    - Bearer token read from the shared :class:`BrivoTokenHolder` per call
    - Centralized error classification (expired token / duplicate / other)

    The client never refreshes on its own: a 401 surfaces as
    :class:`TokenExpiredError` carrying the token generation that was used,
    so the orchestration layer can coordinate a single refresh.

    Usage:
        client = BrivoClient(tokens, api_key="...", gate=ConcurrencyGate(20))
        resp = client.get("/users", params={"pageSize": 100})
    """

    def __init__(
        self,
        tokens: TokenHolder,
        api_key: str,
        base_url: str = DEFAULT_API_URL,
        gate: Optional[ConcurrencyGate] = None,
    ):
        self.tokens = tokens
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.gate = gate

    def get(self, path: str, params: Optional[Dict] = None) -> requests.Response:
        return self._request("GET", path, params=params)

    def post(self, path: str, json: Optional[Any] = None) -> requests.Response:
        return self._request("POST", path, json=json)

    def put(self, path: str, json: Optional[Any] = None) -> requests.Response:
        return self._request("PUT", path, json=json)

    def delete(self, path: str) -> requests.Response:
        return self._request("DELETE", path)

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        if self.gate is not None:
            with self.gate.slot():
                resp, generation = self._send(method, url, **kwargs)
        else:
            resp, generation = self._send(method, url, **kwargs)
        self._handle_error(resp, url, generation)
        return resp

    def _send(self, method: str, url: str, **kwargs) -> tuple[requests.Response, int]:
        # Read the token inside the slot so a value is never carried across a wait
        token, generation = self.tokens.snapshot()
        if self.tokens.is_expired():
            # Never sent; handled like a 401 for this generation
            raise TokenExpiredError("Access token expired before the request was sent", url, generation=generation)
        headers = {
            "Authorization": f"Bearer {token}",
            "api-key": self.api_key,
            "Content-Type": "application/json",
        }
        logger.debug(f"{method} {url}")
        resp = requests.request(method, url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        return resp, generation

    def _handle_error(self, resp: requests.Response, url: str, generation: int) -> None:
        """Raise the typed error matching a failed response.

        Raises:
            TokenExpiredError: 401
            DuplicateResourceError: 409, or 400 carrying a duplicate marker
            BrivoAPIError: Any other status >= 400
        """
        if resp.status_code < 400:
            return
        message = _error_message(resp)
        if resp.status_code == 401:
            raise TokenExpiredError(message, url, generation=generation)
        if resp.status_code == 409 or (resp.status_code == 400 and DUPLICATE_MARKER in message.lower()):
            raise DuplicateResourceError(resp.status_code, message, url)
        raise BrivoAPIError(resp.status_code, message, url)


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error_description") or body.get("error") or body)
    return str(body)


def paginate(client: BrivoClient, path: str, page_size: int = 100, params: Optional[Dict] = None) -> list[dict]:
    """Collect every record of an offset/pageSize paginated Brivo listing.

    Stops at ``count`` when the response carries it, otherwise at the first
    empty page.
    """
    records: list[dict] = []
    offset = 0
    while True:
        query = dict(params or {})
        query.update({"offset": offset, "pageSize": page_size})
        body = client.get(path, params=query).json() or {}
        page = body.get("data") or []
        records.extend(page)
        offset += len(page)
        total = body.get("count")
        if not page or (total is not None and offset >= int(total)):
            return records
