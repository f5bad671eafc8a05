"""HTTP client for the MINDBODY Public API (v6)."""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional

import requests

from ..tokens import AccessToken, TokenHolder, TokenRefreshError
from .exceptions import MindbodyAPIError

REQUEST_TIMEOUT = 10
DEFAULT_API_URL = "https://api.mindbodyonline.com/public/v6"
MAX_PAGE_SIZE = 200

logger = logging.getLogger(__name__)


class MindbodyTokenHolder(TokenHolder):
    """Staff user token issued by ``/usertoken/issue``.

    MINDBODY does not report a lifetime, so the holder assumes ``lifetime``
    seconds (tokens are documented as valid for seven days).
    """

    def __init__(
        self,
        username: str,
        password: str,
        api_key: str,
        site_id: str,
        base_url: str = DEFAULT_API_URL,
        lifetime: int = 7 * 24 * 3600,
    ):
        super().__init__("MINDBODY")
        self.username = username
        self.password = password
        self.api_key = api_key
        self.site_id = site_id
        self.base_url = base_url.rstrip("/")
        self.lifetime = lifetime

    def _fetch(self, current: Optional[AccessToken]) -> AccessToken:
        resp = requests.post(
            f"{self.base_url}/usertoken/issue",
            json={"Username": self.username, "Password": self.password},
            headers={"Api-Key": self.api_key, "SiteId": self.site_id, "Content-Type": "application/json"},
            timeout=REQUEST_TIMEOUT,
        )
        if resp.status_code != 200:
            raise TokenRefreshError(self.system, f"[{resp.status_code}] {resp.text}")
        return AccessToken.from_lifetime(resp.json()["AccessToken"], self.lifetime)


class MindbodyClient:
    """Client for the membership system of record.

    Usage:
        tokens = MindbodyTokenHolder(username, password, api_key, site_id)
        client = MindbodyClient(tokens)
        members = client.list_clients()
    """

    def __init__(self, tokens: MindbodyTokenHolder, page_size: int = MAX_PAGE_SIZE):
        self.tokens = tokens
        self.base_url = tokens.base_url
        self.page_size = min(page_size, MAX_PAGE_SIZE)

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        self.tokens.ensure_valid()
        token, _ = self.tokens.snapshot()
        url = f"{self.base_url}{path}"
        headers = {
            "Api-Key": self.tokens.api_key,
            "SiteId": self.tokens.site_id,
            "Authorization": token,
            "Content-Type": "application/json",
        }
        resp = requests.request(method, url, headers=headers, timeout=REQUEST_TIMEOUT, **kwargs)
        if resp.status_code >= 400:
            raise MindbodyAPIError(resp.status_code, _error_message(resp), url)
        return resp

    def list_clients(self, limit: Optional[int] = None) -> list[dict]:
        """Return every client record, following ``PaginationResponse`` offsets.

        Args:
            limit: Stop after this many records (debug runs)
        """
        clients: list[dict] = []
        offset = 0
        while True:
            resp = self._request("GET", "/client/clients", params={"limit": self.page_size, "offset": offset})
            body = resp.json() or {}
            page = body.get("Clients") or []
            clients.extend(page)
            pagination = body.get("PaginationResponse") or {}
            offset += int(pagination.get("PageSize", len(page)))
            total = int(pagination.get("TotalResults", 0))
            logger.debug(f"Fetched {len(clients)}/{total} MINDBODY clients")
            if not page or offset >= total:
                break
            if limit is not None and len(clients) >= limit:
                break
        return clients[:limit] if limit is not None else clients

    def add_arrival(self, client_id: str, location_id: int) -> Dict[str, Any]:
        """Log a client arrival (check-in) at a location."""
        resp = self._request("POST", "/client/addarrival", json={"ClientId": client_id, "LocationId": location_id})
        return resp.json() or {}


def _error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text
    error = body.get("Error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return f"{error.get('Code', '')}: {error.get('Message', '')}".strip(": ")
    return str(body)
