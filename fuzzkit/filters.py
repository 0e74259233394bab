"""Response filters and matchers, and the manager that holds them."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass, field

ALL_STATUSES = 0

_INT_RE = re.compile(r"[+-]?\d+")
_RANGE_RE = re.compile(r"(\d+)-(\d+)")


class FilterError(ValueError):
    """Raised when a filter or matcher cannot be created."""


@dataclass(frozen=True)
class ValueRange:
    """An inclusive range of integers."""

    min: int
    max: int

    def __str__(self) -> str:
        return str(self.min) if self.min == self.max else f"{self.min}-{self.max}"


def parse_value_range(value: str) -> ValueRange:
    """Parse ``N`` or ``N-M`` into a range."""
    m = _RANGE_RE.fullmatch(value)
    if m:
        return ValueRange(int(m.group(1)), int(m.group(2)))
    if _INT_RE.fullmatch(value):
        number = int(value)
        return ValueRange(number, number)
    raise FilterError(f"invalid value range: {value}")


def _parse_ranges(value: str, error_prefix: str) -> list[ValueRange]:
    ranges = []
    for item in value.split(","):
        try:
            ranges.append(parse_value_range(item))
        except FilterError:
            raise FilterError(f"{error_prefix}{item}") from None
    return ranges


def _in_ranges(amount: int, ranges: list[ValueRange]) -> bool:
    return any(r.min <= amount <= r.max for r in ranges)


def _format_ranges(ranges: list[ValueRange]) -> str:
    return ",".join(str(vr) for vr in ranges)


class StatusFilter:
    """Filters on the HTTP status code; ``all`` matches any code."""

    def __init__(self, value: str) -> None:
        ranges = []
        for item in value.split(","):
            if item == "all":
                ranges.append(ValueRange(ALL_STATUSES, ALL_STATUSES))
                continue
            try:
                ranges.append(parse_value_range(item))
            except FilterError:
                raise FilterError(
                    f"Status filter or matcher (-fc / -mc): invalid value {item}"
                ) from None
        self.value = ranges

    def filter(self, response) -> bool:
        for vr in self.value:
            if vr.min == ALL_STATUSES and vr.max == ALL_STATUSES:
                return True
            if vr.min <= response.status_code <= vr.max:
                return True
        return False

    def value_repr(self) -> str:
        return ",".join(
            "all" if vr.min == ALL_STATUSES and vr.max == ALL_STATUSES else str(vr)
            for vr in self.value
        )

    def verbose_repr(self) -> str:
        return f"Response status: {self.value_repr()}"

    def to_json(self) -> dict:
        """Return the JSON-serialisable form of this filter."""
        return {"value": self.value_repr()}


class SizeFilter:
    """Filters on the response content length."""

    def __init__(self, value: str) -> None:
        self.value = _parse_ranges(
            value, "Size filter or matcher (-fs / -ms): invalid value: "
        )

    def filter(self, response) -> bool:
        return _in_ranges(response.content_length, self.value)

    def value_repr(self) -> str:
        return _format_ranges(self.value)

    def verbose_repr(self) -> str:
        return f"Response size: {self.value_repr()}"

    def to_json(self) -> dict:
        """Return the JSON-serialisable form of this filter."""
        return {"value": self.value_repr()}


class WordFilter:
    """Filters on the number of space-separated words in the body."""

    def __init__(self, value: str) -> None:
        self.value = _parse_ranges(
            value, "Word filter or matcher (-fw / -mw): invalid value: "
        )

    def filter(self, response) -> bool:
        return _in_ranges(len(response.data.split(b" ")), self.value)

    def value_repr(self) -> str:
        return _format_ranges(self.value)

    def verbose_repr(self) -> str:
        return f"Response words: {self.value_repr()}"

    def to_json(self) -> dict:
        """Return the JSON-serialisable form of this filter."""
        return {"value": self.value_repr()}


class LineFilter:
    """Filters on the number of lines in the body."""

    def __init__(self, value: str) -> None:
        self.value = _parse_ranges(
            value, "Line filter or matcher (-fl / -ml): invalid value: "
        )

    def filter(self, response) -> bool:
        return _in_ranges(len(response.data.split(b"\n")), self.value)

    def value_repr(self) -> str:
        return _format_ranges(self.value)

    def verbose_repr(self) -> str:
        return f"Response lines: {self.value_repr()}"

    def to_json(self) -> dict:
        """Return the JSON-serialisable form of this filter."""
        return {"value": self.value_repr()}


class RegexpFilter:
    """Filters on a regular expression searched in headers and body."""

    def __init__(self, value: str) -> None:
        try:
            self.pattern = re.compile(value)
        except re.error:
            raise FilterError(
                f"Regexp filter or matcher (-fr / -mr): invalid value: {value}"
            ) from None
        self.raw = value

    def filter(self, response) -> bool:
        header_text = "".join(
            f"{name}: {item}\r\n"
            for name, values in response.headers.items()
            for item in values
        )
        subject = header_text + response.data.decode("utf-8", "replace")
        pattern = self.raw
        request = response.request
        if request is not None:
            for keyword, item in request.input.items():
                pattern = pattern.replace(
                    keyword, re.escape(item.decode("utf-8", "replace"))
                )
        try:
            return re.search(pattern, subject) is not None
        except re.error:
            return False

    def value_repr(self) -> str:
        return self.raw

    def verbose_repr(self) -> str:
        return f"Regexp: {self.raw}"

    def to_json(self) -> dict:
        """Return the JSON-serialisable form of this filter."""
        return {"value": self.raw}


class TimeFilter:
    """Filters on response time in milliseconds, given as ``>N`` or ``<N``."""

    def __init__(self, value: str) -> None:
        greater = value.startswith(">")
        less = value.startswith("<")
        if greater == less or not _INT_RE.fullmatch(value[1:]):
            raise FilterError(
                f"Time filter or matcher (-ft / -mt): invalid value: {value}"
            )
        self.milliseconds = int(value[1:])
        self.greater_than = greater
        self.less_than = less
        self.raw = value

    def filter(self, response) -> bool:
        elapsed_ms = int(response.duration / 1_000_000)
        if self.greater_than:
            return elapsed_ms > self.milliseconds
        return elapsed_ms < self.milliseconds

    def value_repr(self) -> str:
        return self.raw

    def verbose_repr(self) -> str:
        return f"Response time: {self.raw}"

    def to_json(self) -> dict:
        """Return the JSON-serialisable form of this filter."""
        return {"value": self.raw}


_FILTER_TYPES = {
    "status": StatusFilter,
    "size": SizeFilter,
    "word": WordFilter,
    "line": LineFilter,
    "regexp": RegexpFilter,
    "time": TimeFilter,
}


def new_filter_by_name(name: str, value: str):
    """Create the filter registered under ``name`` from ``value``."""
    try:
        factory = _FILTER_TYPES[name]
    except KeyError:
        raise FilterError(f"Could not create filter with name {name}") from None
    return factory(value)


@dataclass
class PerDomainFilter:
    """Filters and calibration state that apply to one host."""

    filters: dict = field(default_factory=dict)
    is_calibrated: bool = False


def _merged(existing: dict, name: str, option: str, replace: bool) -> None:
    new = new_filter_by_name(name, option)
    if name not in existing or replace:
        existing[name] = new
        return
    try:
        existing[name] = new_filter_by_name(
            name, existing[name].value_repr() + "," + option
        )
    except FilterError:
        pass


class MatcherManager:
    """Holds the matchers, the global filters and the per-host filters."""

    def __init__(self) -> None:
        self.is_calibrated = False
        self.matchers: dict = {}
        self.filters: dict = {}
        self.per_domain_filters: dict[str, PerDomainFilter] = {}
        self._lock = threading.Lock()

    def set_calibrated_for_host(self, host: str, value: bool) -> None:
        existing = self.per_domain_filters.get(host)
        if existing is not None:
            existing.is_calibrated = value
        else:
            self.per_domain_filters[host] = PerDomainFilter(
                filters=self.filters, is_calibrated=True
            )

    def add_filter(self, name: str, option: str, replace: bool) -> None:
        """Add a filter, or extend an existing one unless ``replace`` is set."""
        with self._lock:
            _merged(self.filters, name, option, replace)

    def add_per_domain_filter(self, domain: str, name: str, option: str) -> None:
        """Add or extend a filter that applies to ``domain``."""
        with self._lock:
            pd = self.per_domain_filters.get(domain)
            if pd is None:
                pd = PerDomainFilter(filters=self.filters)
            try:
                _merged(pd.filters, name, option, False)
            finally:
                self.per_domain_filters[domain] = pd

    def remove_filter(self, name: str) -> None:
        with self._lock:
            self.filters.pop(name, None)

    def add_matcher(self, name: str, option: str) -> None:
        """Add a matcher, or extend an existing one of the same kind."""
        with self._lock:
            _merged(self.matchers, name, option, False)

    def filters_for_domain(self, domain: str) -> dict:
        pd = self.per_domain_filters.get(domain)
        return self.filters if pd is None else pd.filters

    def calibrated_for_domain(self, domain: str) -> bool:
        pd = self.per_domain_filters.get(domain)
        return pd.is_calibrated if pd is not None else False