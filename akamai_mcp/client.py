"""
EdgeGrid-authenticated client for the Akamai APIs
"""

import asyncio
import os
import threading
from typing import Any, Dict, List, Optional

import requests
from akamai.edgegrid import EdgeGridAuth, EdgeRc

from .exceptions import AkamaiAPIError, AkamaiMCPError, EdgeRcError
from .logging_config import setup_logging

logger = setup_logging()

# Rule tree media type used for reading and writing property rules
PAPI_RULES_MEDIA_TYPE = "application/vnd.akamai.papirules.latest+json"


class AkamaiClient:
    """Make signed requests against one Akamai account.

    All remote calls go through :meth:`request`, which returns the parsed
    JSON body (``None`` for empty responses) or raises
    :class:`AkamaiAPIError` carrying the HTTP status. The underlying
    ``requests`` call is blocking and runs in a worker thread so that bulk
    operations can keep many requests outstanding on one event loop.

    ``requests.Session`` is not thread-safe, so each worker thread gets its
    own session signed with ``auth``. A session passed in explicitly is
    used as is by every thread.
    """

    def __init__(
        self,
        base_url: str,
        session: Optional[requests.Session] = None,
        account_switch_key: Optional[str] = None,
        timeout: int = 30,
        section: str = "default",
        auth: Optional[requests.auth.AuthBase] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.auth = auth
        self._shared_session = session
        self._local = threading.local()
        self._sessions: List[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.account_switch_key = account_switch_key
        self.timeout = timeout
        self.section = section

    @property
    def session(self) -> requests.Session:
        """Session for the calling thread"""
        if self._shared_session is not None:
            return self._shared_session

        session = getattr(self._local, "session", None)
        if session is None:
            session = requests.Session()
            session.auth = self.auth
            self._local.session = session
            with self._sessions_lock:
                self._sessions.append(session)
        return session

    @classmethod
    def from_edgerc(
        cls,
        edgerc_path: str,
        section: str = "default",
        account_switch_key: Optional[str] = None,
        timeout: int = 30,
    ) -> "AkamaiClient":
        """Build a client from a section of an .edgerc file"""
        edgerc_path = os.path.expanduser(edgerc_path)
        if not os.path.exists(edgerc_path):
            raise EdgeRcError(
                edgerc_path,
                "file not found. Please create this file with your Akamai API "
                "credentials (see https://techdocs.akamai.com/developer/docs/"
                "set-up-authentication-credentials)",
            )

        edgerc = EdgeRc(edgerc_path)
        if not edgerc.has_section(section):
            raise EdgeRcError(edgerc_path, f"section [{section}] not found")

        host = edgerc.get(section, "host", fallback=None)
        if not host:
            raise EdgeRcError(edgerc_path, f"section [{section}] has no host")
        if not host.startswith("http"):
            host = f"https://{host}"

        auth = EdgeGridAuth.from_edgerc(edgerc, section)

        if not account_switch_key:
            account_switch_key = edgerc.get(section, "account_key", fallback=None)

        logger.info(f"Created Akamai client for section [{section}]")
        return cls(
            base_url=host,
            auth=auth,
            account_switch_key=account_switch_key,
            timeout=timeout,
            section=section,
        )

    async def request(
        self,
        path: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        query_params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        """Make an authenticated request and return the parsed response"""
        return await asyncio.to_thread(
            self._send, path, method, headers, query_params, body
        )

    def _send(
        self,
        path: str,
        method: str,
        headers: Optional[Dict[str, str]],
        query_params: Optional[Dict[str, Any]],
        body: Any,
    ) -> Any:
        if not path.startswith("/"):
            path = f"/{path}"
        method = method.upper()

        params: Dict[str, Any] = {}
        if self.account_switch_key:
            params["accountSwitchKey"] = self.account_switch_key
        if query_params:
            params.update({k: v for k, v in query_params.items() if v is not None})

        request_headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if headers:
            request_headers.update(headers)

        logger.debug(f"Making request: {method} {path} params={sorted(params)}")

        try:
            response = self.session.request(
                method,
                f"{self.base_url}{path}",
                params=params or None,
                headers=request_headers,
                json=body,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise AkamaiMCPError(
                f"Network error during {method} {path}: {e}",
                error_code="NETWORK_ERROR",
                details={
                    "path": path,
                    "method": method,
                    "original_error": str(e),
                    "original_type": type(e).__name__,
                },
            ) from e

        logger.debug(f"Response {response.status_code} for {method} {path}")

        if response.status_code >= 400:
            raise self._parse_error_response(response)

        if not response.content:
            return None

        try:
            return response.json()
        except ValueError:
            # Return raw body if not JSON
            return response.text

    @staticmethod
    def _parse_error_response(response: requests.Response) -> AkamaiAPIError:
        """Turn an error response (RFC 7807 problem details) into an exception"""
        status = response.status_code
        if not response.content:
            return AkamaiAPIError(status, title="No response body")

        try:
            data = response.json()
        except ValueError:
            return AkamaiAPIError(status, title=response.text.strip())

        if not isinstance(data, dict):
            return AkamaiAPIError(status, title=str(data))

        return AkamaiAPIError(
            status,
            title=data.get("title"),
            detail=data.get("detail"),
            errors=[e for e in data.get("errors") or [] if isinstance(e, dict)],
            details={"type": data.get("type"), "instance": data.get("instance")},
        )

    def close(self):
        if self._shared_session is not None:
            self._shared_session.close()
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
