"""Endpoint handling, request signing and retrying transport for projects."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import re
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from email.utils import formatdate
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl, quote, urlencode, urlsplit

HTTP_SCHEME = "http://"
HTTPS_SCHEME = "https://"
API_VERSION = "0.6.0"
DEFAULT_USER_AGENT = "logservice-python"
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_RETRY_TIMEOUT = 90.0

PROJECT_DATA_REDUNDANCY_TYPE_UNKNOWN = "Unknown"
PROJECT_DATA_REDUNDANCY_TYPE_LRS = "LRS"
PROJECT_DATA_REDUNDANCY_TYPE_ZRS = "ZRS"

# Forces plain HTTP for every project when set.
GLOBAL_FORCE_USING_HTTP = False

_IP_RE = re.compile(r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}.*")
_RETRYABLE_STATUS = frozenset({500, 502, 503})
_MAX_BACKOFF = 5.0


class LogError(Exception):
    """An error reported by the log service."""

    def __init__(self, code: str = "", message: str = "", request_id: str = "", http_code: int = 0):
        super().__init__(message)
        self.code = code
        self.message = message
        self.request_id = request_id
        self.http_code = http_code

    def __str__(self) -> str:
        return json.dumps(
            {
                "httpCode": self.http_code,
                "errorCode": self.code,
                "errorMessage": self.message,
                "requestID": self.request_id,
            },
            ensure_ascii=False,
        )

    @classmethod
    def from_body(cls, status: int, body: Any) -> "LogError":
        """Build an error from a response status and its JSON body."""
        text = body.decode("utf-8", "replace") if isinstance(body, (bytes, bytearray)) else (body or "")
        try:
            data = json.loads(text) if text else {}
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return cls(message=text, http_code=status)
        return cls(
            code=str(data.get("errorCode", "")),
            message=str(data.get("errorMessage", "")),
            request_id=str(data.get("requestID", "")),
            http_code=status,
        )


class ClientError(LogError):
    """An error raised on the client side, before or instead of a service reply."""

    def __init__(self, message: str):
        super().__init__(code="ClientError", message=message)


@dataclass
class Response:
    """An HTTP response: status, headers and raw body."""

    status: int
    headers: dict = field(default_factory=dict)
    body: bytes = b""


class UrllibTransport:
    """Sends HTTP requests with the standard library."""

    def __call__(
        self,
        method: str,
        url: str,
        headers: dict,
        body: Optional[bytes],
        timeout: float,
        proxy: Optional[str],
    ) -> Response:
        request = urllib.request.Request(url, data=body, headers=headers, method=method)
        if proxy:
            opener = urllib.request.build_opener(urllib.request.ProxyHandler({"http": proxy, "https": proxy}))
        else:
            opener = urllib.request.build_opener()
        try:
            with opener.open(request, timeout=timeout) as reply:
                return Response(reply.status, dict(reply.headers.items()), reply.read())
        except urllib.error.HTTPError as exc:
            with exc:
                return Response(exc.code, dict(exc.headers.items()) if exc.headers else {}, exc.read())


def parse_endpoint(endpoint: str, project_name: str, using_http: bool) -> tuple[str, Optional[str]]:
    """Return the base URL for a project and the proxy URL for IP endpoints."""
    scheme = HTTP_SCHEME
    host = endpoint
    if endpoint.startswith(HTTP_SCHEME):
        host = endpoint[len(HTTP_SCHEME):]
    elif endpoint.startswith(HTTPS_SCHEME):
        scheme = HTTPS_SCHEME
        host = endpoint[len(HTTPS_SCHEME):]
    if using_http:
        scheme = HTTP_SCHEME
    proxy = f"{scheme}{host}" if _IP_RE.search(host) else None
    base_url = f"{scheme}{host}" if not project_name else f"{scheme}{project_name}.{host}"
    return base_url, proxy


def _header(headers: dict, name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def _signature(secret: str, method: str, headers: dict, path: str, query: list) -> str:
    lower = {key.lower(): str(value) for key, value in headers.items()}
    log_headers = sorted(
        (key, value) for key, value in lower.items() if key.startswith(("x-log-", "x-acs-"))
    )
    resource = path
    if query:
        resource += "?" + "&".join(f"{key}={value}" for key, value in sorted(query))
    to_sign = "\n".join(
        [
            method,
            lower.get("content-md5", ""),
            lower.get("content-type", ""),
            lower.get("date", ""),
            "\n".join(f"{key}:{value}" for key, value in log_headers),
            resource,
        ]
    )
    digest = hmac.new(secret.encode("utf-8"), to_sign.encode("utf-8"), hashlib.sha1).digest()
    return base64.b64encode(digest).decode("ascii")


class ProjectBase:
    """Connection settings of a project and the signed, retried request path.

    A credentials provider is any object whose ``get_credentials()`` returns
    ``(access_key_id, access_key_secret, security_token)``.
    """

    def __init__(
        self,
        name: str,
        endpoint: str,
        access_key_id: str = "",
        access_key_secret: str = "",
        credentials_provider: Any = None,
        transport: Optional[Callable[..., Response]] = None,
    ):
        self.name = name
        self.endpoint = endpoint
        self.access_key_id = access_key_id
        self.access_key_secret = access_key_secret
        self.security_token = ""
        self.using_http = False
        self.user_agent = DEFAULT_USER_AGENT
        self.common_headers: dict[str, str] = {}
        self.inner_headers: dict[str, str] = {}
        self.request_timeout = DEFAULT_REQUEST_TIMEOUT
        self.retry_timeout = DEFAULT_RETRY_TIMEOUT
        self.credentials_provider = credentials_provider
        self.transport = transport if transport is not None else UrllibTransport()
        self.proxy: Optional[str] = None
        self._base_url = ""
        self._parse_endpoint()

    def _parse_endpoint(self) -> None:
        base_url, proxy = parse_endpoint(
            self.endpoint, self.name, GLOBAL_FORCE_USING_HTTP or self.using_http
        )
        self._base_url = base_url
        if proxy:
            self.proxy = proxy

    def with_credentials_provider(self, provider: Any) -> "ProjectBase":
        self.credentials_provider = provider
        return self

    def with_token(self, token: str) -> "ProjectBase":
        self.security_token = token
        return self

    def with_request_timeout(self, timeout: float) -> "ProjectBase":
        self.request_timeout = timeout
        return self

    def with_retry_timeout(self, timeout: float) -> "ProjectBase":
        self.retry_timeout = timeout
        return self

    def base_url(self) -> str:
        if not self._base_url:
            self._parse_endpoint()
        return self._base_url

    def _credentials(self) -> tuple[str, str, str]:
        if self.credentials_provider is not None:
            key_id, key_secret, session_token = self.credentials_provider.get_credentials()
            return key_id, key_secret, session_token or ""
        return self.access_key_id, self.access_key_secret, self.security_token

    def _send_once(self, method: str, uri: str, headers: dict, body: Optional[bytes]) -> Response:
        parts = urlsplit(uri)
        path = parts.path or "/"
        query = parse_qsl(parts.query, keep_blank_values=True)
        base_url = self.base_url()
        url = base_url + path
        if query:
            url += "?" + urlencode(query, quote_via=quote)

        key_id, key_secret, session_token = self._credentials()
        final = {**self.common_headers, **self.inner_headers, **headers}
        final.update(
            {
                "x-log-apiversion": API_VERSION,
                "x-log-signaturemethod": "hmac-sha1",
                "Date": formatdate(usegmt=True),
                "Host": urlsplit(base_url).netloc,
                "User-Agent": self.user_agent or DEFAULT_USER_AGENT,
                "Content-Length": str(len(body) if body else 0),
            }
        )
        if body:
            final["Content-MD5"] = hashlib.md5(body).hexdigest().upper()
        if session_token:
            final["x-acs-security-token"] = session_token
        signature = _signature(key_secret, method, final, path, query)
        final["Authorization"] = f"LOG {key_id}:{signature}"
        return self.transport(method, url, final, body, self.request_timeout, self.proxy)

    def raw_request(
        self,
        method: str,
        uri: str,
        headers: Optional[dict] = None,
        body: Any = None,
    ) -> Response:
        """Send a signed request, retrying server and network failures.

        Returns the response on status 200 and raises LogError otherwise.
        """
        if isinstance(body, str):
            body = body.encode("utf-8")
        headers = dict(headers or {})
        deadline = time.monotonic() + self.retry_timeout
        delay = 0.1
        while True:
            try:
                response = self._send_once(method, uri, headers, body)
            except OSError as exc:
                last: LogError = ClientError(str(exc))
            else:
                if response.status == 200:
                    return response
                last = LogError.from_body(response.status, response.body)
                if not last.request_id:
                    last.request_id = _header(response.headers, "x-log-requestid")
                if response.status not in _RETRYABLE_STATUS:
                    raise last
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                message = (
                    f"stopped retrying err: {last}, "
                    f"retry timeout of {self.retry_timeout}s exceeded"
                )
                if isinstance(last, ClientError):
                    raise ClientError(message) from last
                raise LogError(last.code, message, last.request_id, last.http_code) from last
            time.sleep(min(delay, remaining))
            delay = min(delay * 2, _MAX_BACKOFF)