import logging
from typing import Any, Dict, Optional

import requests

from ..errors import ApiError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class ManagementClient:
    """Client for the Auth0 Management API v2 of one tenant."""

    def __init__(self, domain: str, client_id: str, client_secret: str,
                 timeout: float = DEFAULT_TIMEOUT,
                 session: Optional[requests.Session] = None) -> None:
        self.domain = domain
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.base_url = f"https://{domain}/api/v2"
        self._session = session or requests.Session()
        self._token: Optional[str] = None
        self._session.headers.update({
            "Accept": "application/json",
            "User-Agent": "tenant-migration",
        })

    def login(self) -> str:
        """Obtain a Management API token through the client-credentials grant."""
        url = f"https://{self.domain}/oauth/token"
        try:
            resp = self._session.post(url, json={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "audience": f"{self.base_url}/",
            }, timeout=self.timeout)
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise ApiError(f"Login to {self.domain} failed ({resp.status_code}): {resp.text}",
                           status_code=resp.status_code) from e
        except requests.RequestException as e:
            raise ApiError(f"Login to {self.domain} failed: {e}") from e

        token = resp.json().get("access_token")
        if not token:
            raise ApiError(f"Login to {self.domain} succeeded but no token returned")

        self._token = token.strip()
        self._session.headers.update({"Authorization": f"Bearer {self._token}"})
        logger.debug("Obtained management token for %s", self.domain)
        return self._token

    def _request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """Send a request, logging in first if needed and once more on 401."""
        if self._token is None:
            self.login()
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        kwargs.setdefault("timeout", self.timeout)

        resp = self._session.request(method, url, **kwargs)
        if resp.status_code == 401:
            logger.info("401 on %s %s, re-authenticating", method, endpoint)
            self.login()
            resp = self._session.request(method, url, **kwargs)
        resp.raise_for_status()
        return resp

    def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> requests.Response:
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint: str, json_data: Optional[Dict[str, Any]] = None,
             **kwargs: Any) -> requests.Response:
        if json_data is not None:
            kwargs["json"] = json_data
        return self._request("POST", endpoint, **kwargs)

    def close(self) -> None:
        self._session.close()


__all__ = ["ManagementClient", "DEFAULT_TIMEOUT"]
