"""Core data types shared across the fuzzer: configuration, requests, responses and results."""

from __future__ import annotations

import time
from dataclasses import dataclass, field

from fuzzkit.filters import MatcherManager


@dataclass
class InputProviderConfig:
    """Describes one input source: its kind, the keyword it fills and its argument."""

    name: str
    keyword: str
    value: str


@dataclass
class Delay:
    """Delay between requests in seconds, either fixed or a range."""

    min: float = 0.0
    max: float = 0.0
    is_range: bool = False
    has_delay: bool = False


@dataclass
class Config:
    """Settings for a fuzzing job."""

    url: str = ""
    method: str = "GET"
    data: str = ""
    command_line: str = ""
    input_providers: list[InputProviderConfig] = field(default_factory=list)
    input_mode: str = "clusterbomb"
    input_num: int = 100
    input_shell: str = ""
    command_keywords: list[str] = field(default_factory=list)
    extensions: list[str] = field(default_factory=list)
    dir_search_compat: bool = False
    ignore_wordlist_comments: bool = False
    output_file: str = ""
    output_format: str = "json"
    output_directory: str = ""
    output_skip_empty_file: bool = False
    proxy_url: str = ""
    replay_proxy_url: str = ""
    sni: str = ""
    timeout: int = 10
    http2: bool = False
    follow_redirects: bool = False
    ignore_body: bool = False
    delay: Delay = field(default_factory=Delay)
    rate: int = 0
    quiet: bool = False
    colors: bool = False
    json: bool = False
    verbose: bool = False
    matcher_manager: MatcherManager = field(default_factory=MatcherManager)


@dataclass
class Request:
    """An HTTP request template or a request prepared with concrete inputs."""

    method: str = "GET"
    url: str = ""
    host: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    data: bytes = b""
    input: dict[str, bytes] = field(default_factory=dict)
    position: int = 0
    raw: str = ""

    def copy(self) -> Request:
        """Return an independent copy of this request."""
        return Request(
            method=self.method,
            url=self.url,
            host=self.host,
            headers=dict(self.headers),
            data=bytes(self.data),
            input=dict(self.input),
            position=self.position,
            raw=self.raw,
        )


@dataclass
class Response:
    """A received HTTP response along with its measurements."""

    status_code: int = 0
    headers: dict[str, list[str]] = field(default_factory=dict)
    data: bytes = b""
    content_length: int = 0
    content_words: int = 0
    content_lines: int = 0
    content_type: str = ""
    cancelled: bool = False
    request: Request | None = None
    raw: str = ""
    result_file: str = ""
    scraper_data: dict[str, list[str]] = field(default_factory=dict)
    duration: int = 0  # nanoseconds until the first response byte


@dataclass
class ScraperResult:
    """Values extracted from a response by one scraper rule."""

    name: str
    type: str
    action: list[str] = field(default_factory=list)
    results: list[str] = field(default_factory=list)


@dataclass
class Result:
    """A matched response as it is reported and saved."""

    input: dict[str, bytes] = field(default_factory=dict)
    position: int = 0
    status_code: int = 0
    content_length: int = 0
    content_words: int = 0
    content_lines: int = 0
    content_type: str = ""
    redirect_location: str = ""
    scraper_data: dict[str, list[str]] = field(default_factory=dict)
    duration: int = 0  # nanoseconds
    result_file: str = ""
    url: str = ""
    host: str = ""
    html_color: str = ""

    def to_dict(self) -> dict:
        """Return the JSON report form of this result."""
        return {
            "input": {k: v.decode("utf-8", "replace") for k, v in self.input.items()},
            "position": self.position,
            "status": self.status_code,
            "length": self.content_length,
            "words": self.content_words,
            "lines": self.content_lines,
            "content-type": self.content_type,
            "redirectlocation": self.redirect_location,
            "scraper": {k: list(v) for k, v in self.scraper_data.items()},
            "duration": self.duration,
            "resultfile": self.result_file,
            "url": self.url,
            "host": self.host,
        }


@dataclass
class Progress:
    """Progress counters of the running job."""

    started_at: float = field(default_factory=time.time)
    req_count: int = 0
    req_total: int = 0
    req_sec: int = 0
    queue_pos: int = 0
    queue_total: int = 0
    error_count: int = 0