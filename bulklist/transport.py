import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional

import requests

from .errors import RemoteError

logger = logging.getLogger(__name__)

GRAPHQL_ENDPOINT = "https://api.graphql.imdb.com/"
CLIENT_NAME = "imdb-web-next-localized"


class Transport(ABC):
    """Carries one JSON request envelope to the service and returns its body."""

    @abstractmethod
    def post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send ``payload`` and return the decoded JSON response.

        Raises:
            RemoteError: on network failure, a non-2xx status, or a body that
                is not a JSON object.
        """
        pass

    def close(self) -> None:
        """Release any connections held by the transport."""
        pass


def build_headers(cookies: Optional[Mapping[str, str]] = None,
                  language: str = "en-US") -> Dict[str, str]:
    """Headers the web front-end sends with every GraphQL call."""
    cookies = cookies or {}
    return {
        "accept": "application/graphql+json, application/json",
        "content-type": "application/json",
        "x-amzn-sessionid": cookies.get("session-id", ""),
        "x-imdb-client-name": CLIENT_NAME,
        "x-imdb-user-language": language,
        "x-imdb-consent-info": cookies.get("ci", ""),
    }


class RequestsTransport(Transport):
    """Transport backed by a ``requests.Session``.

    Credentials are ambient: whatever cookies the session holds go out with
    every call. Nothing here constructs or stores credentials of its own.
    """

    def __init__(self,
                 endpoint: str = GRAPHQL_ENDPOINT,
                 session: Optional[requests.Session] = None,
                 headers: Optional[Mapping[str, str]] = None,
                 timeout: float = 30):
        if not (endpoint.startswith("http://") or endpoint.startswith("https://")):
            endpoint = "https://" + endpoint
        self.endpoint = endpoint
        self.session = session or requests.Session()
        self.headers = dict(headers) if headers is not None else build_headers(
            self.session.cookies.get_dict())
        self.timeout = timeout

    @classmethod
    def from_credentials(cls,
                         session_id: Optional[str] = None,
                         consent_info: Optional[str] = None,
                         language: str = "en-US",
                         endpoint: str = GRAPHQL_ENDPOINT,
                         timeout: float = 30) -> "RequestsTransport":
        """Build a transport whose session carries the given cookies."""
        session = requests.Session()
        if session_id:
            session.cookies.set("session-id", session_id)
        if consent_info:
            session.cookies.set("ci", consent_info)
        headers = build_headers(session.cookies.get_dict(), language=language)
        return cls(endpoint=endpoint, session=session, headers=headers, timeout=timeout)

    def post_json(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            resp = self.session.post(self.endpoint, json=payload,
                                     headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            raise RemoteError(f"Network error: {e}") from e

        if not resp.ok:
            raise RemoteError(f"HTTP {resp.status_code} - {resp.reason}",
                              status=resp.status_code)

        try:
            body = resp.json()
        except ValueError as e:
            raise RemoteError("Response was not valid JSON", status=resp.status_code) from e
        if not isinstance(body, dict):
            raise RemoteError("Response was not a JSON object", status=resp.status_code)
        return body

    def close(self) -> None:
        self.session.close()
