"""Sends prepared fuzzing requests over HTTP and measures the responses."""

from __future__ import annotations

import gzip
import re
import warnings
from urllib.parse import urlsplit

import requests
from requests.adapters import HTTPAdapter

from fuzzkit.models import Config, Request, Response

MAX_DOWNLOAD_SIZE = 5242880
"""Responses announcing a larger body than this are not downloaded."""

USER_AGENT_NAME = "Fuzz Faster U Fool"
VERSION = "2.0.0"

_TOKEN_CHARS = frozenset(
    "!#$%&'*+-.^_`|~0123456789"
    "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"
)
_INT_RE = re.compile(r"[+-]?\d+")


def _canonical_header_key(key: str) -> str:
    """Capitalise a header name per word (``content-type`` -> ``Content-Type``).

    Names containing characters that are not valid in a header name are
    returned unchanged.
    """
    if not all(char in _TOKEN_CHARS for char in key):
        return key
    out = []
    upper = True
    for char in key:
        if upper and "a" <= char <= "z":
            char = char.upper()
        elif not upper and "A" <= char <= "Z":
            char = char.lower()
        out.append(char)
        upper = char == "-"
    return "".join(out)


def _default_user_agent() -> str:
    return f"{USER_AGENT_NAME} v{VERSION}"


class _SNIAdapter(HTTPAdapter):
    """HTTPS adapter that sends a fixed server name in the TLS handshake."""

    def __init__(self, server_name: str, **kwargs) -> None:
        self._server_name = server_name
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        if self._server_name:
            pool_kwargs["server_hostname"] = self._server_name
            pool_kwargs["assert_hostname"] = False
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)


def _http_version(raw) -> str:
    version = getattr(raw, "version", 11)
    return {10: "1.0", 11: "1.1", 20: "2.0"}.get(version, "1.1")


def _response_headers(resp: requests.Response) -> dict[str, list[str]]:
    raw_headers = getattr(resp.raw, "headers", None)
    headers: dict[str, list[str]] = {}
    if raw_headers is not None and hasattr(raw_headers, "getlist"):
        for name in raw_headers:
            key = _canonical_header_key(name)
            headers.setdefault(key, []).extend(raw_headers.getlist(name))
    else:
        for name, value in resp.headers.items():
            headers.setdefault(_canonical_header_key(name), []).append(value)
    return headers


def _first(headers: dict[str, list[str]], name: str) -> str:
    values = headers.get(name)
    return values[0] if values else ""


def _dump_prepared(prepared: requests.PreparedRequest, host: str) -> bytes:
    lines = [f"{prepared.method} {prepared.path_url} HTTP/1.1"]
    names = {name.lower() for name in prepared.headers}
    if "host" not in names:
        lines.append(f"Host: {host}")
    lines.extend(f"{name}: {value}" for name, value in prepared.headers.items())
    head = ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8", "surrogateescape")
    body = prepared.body or b""
    if isinstance(body, str):
        body = body.encode("utf-8")
    return head + body


def _dump_response(resp: requests.Response, headers: dict[str, list[str]], body: bytes) -> str:
    lines = [f"HTTP/{_http_version(resp.raw)} {resp.status_code} {resp.reason or ''}".rstrip()]
    lines.extend(f"{name}: {value}" for name, values in headers.items() for value in values)
    return "\r\n".join(lines) + "\r\n\r\n" + body.decode("utf-8", "replace")


class SimpleRunner:
    """Performs requests one by one with a shared connection pool."""

    def __init__(self, config: Config, replay: bool) -> None:
        self.config = config
        custom_proxy = config.replay_proxy_url if replay else config.proxy_url
        self.proxies: dict[str, str] = {}
        if custom_proxy and urlsplit(custom_proxy).scheme:
            self.proxies = {"http": custom_proxy, "https": custom_proxy}
        self.timeout = config.timeout
        self.follow_redirects = config.follow_redirects

        warnings.filterwarnings("ignore", message="Unverified HTTPS request")
        session = requests.Session()
        session.verify = False
        session.headers = requests.structures.CaseInsensitiveDict(
            {"Accept-Encoding": "gzip"}
        )
        session.mount(
            "https://",
            _SNIAdapter(config.sni, pool_connections=1000, pool_maxsize=500),
        )
        session.mount("http://", HTTPAdapter(pool_connections=1000, pool_maxsize=500))
        self._session = session

    def prepare(self, inputs: dict[str, bytes], base_request: Request) -> Request:
        """Return a copy of ``base_request`` with every keyword replaced by its input."""
        req = base_request.copy()
        for keyword, item in inputs.items():
            text = item.decode("utf-8", "surrogateescape")
            req.method = req.method.replace(keyword, text)
            req.headers = {
                _canonical_header_key(name.replace(keyword, text)): value.replace(keyword, text)
                for name, value in req.headers.items()
            }
            req.url = req.url.replace(keyword, text)
            req.data = req.data.replace(keyword.encode("utf-8"), item)
        req.input = inputs
        return req

    def _prepare_http(self, request: Request) -> requests.PreparedRequest:
        request.headers.setdefault("User-Agent", _default_user_agent())
        prepared = self._session.prepare_request(
            requests.Request(
                method=request.method,
                url=request.url,
                headers=request.headers,
                data=request.data or None,
            )
        )
        request.host = request.headers.get("Host") or urlsplit(prepared.url).netloc
        return prepared

    def execute(self, request: Request) -> Response:
        """Send the request and return the measured response.

        Raises ``requests.RequestException`` when the request cannot be made.
        """
        prepared = self._prepare_http(request)
        settings = self._session.merge_environment_settings(
            prepared.url, dict(self.proxies), True, False, None
        )
        httpresp = self._session.send(
            prepared,
            allow_redirects=self.follow_redirects,
            timeout=self.timeout,
            **settings,
        )
        try:
            headers = _response_headers(httpresp)
            resp = Response(
                status_code=httpresp.status_code,
                headers=headers,
                content_type=_first(headers, "Content-Type"),
                request=request,
            )
            announced = _first(headers, "Content-Length").strip()
            if _INT_RE.fullmatch(announced):
                size = int(announced)
                resp.content_length = size
                if self.config.ignore_body or size > MAX_DOWNLOAD_SIZE:
                    resp.cancelled = True
                    return resp

            raw_body = httpresp.raw.read(decode_content=False) or b""
            body = raw_body
            if _first(headers, "Content-Encoding") == "gzip":
                try:
                    body = gzip.decompress(raw_body)
                except (OSError, EOFError):
                    body = raw_body

            if self.config.output_directory:
                request.raw = _dump_prepared(prepared, request.host).decode(
                    "utf-8", "replace"
                )
                resp.raw = _dump_response(httpresp, headers, body)

            resp.data = body
            resp.content_length = len(body)
            resp.content_words = len(body.split(b" "))
            resp.content_lines = len(body.split(b"\n"))
            resp.duration = int(httpresp.elapsed.total_seconds() * 1_000_000_000)
            return resp
        finally:
            httpresp.close()

    def dump(self, request: Request) -> bytes:
        """Return the request as it would be written on the wire."""
        prepared = self._prepare_http(request)
        return _dump_prepared(prepared, request.host)


def new_runner(name: str, config: Config, replay: bool) -> SimpleRunner:
    """Return the runner for ``name``; the simple runner is the only kind."""
    return SimpleRunner(config, replay)