"""Scraper rules that extract data from responses."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field

from bs4 import BeautifulSoup

from fuzzkit.models import Response, ScraperResult


@dataclass
class ScraperRule:
    """One extraction rule: a regular expression or a CSS query."""

    name: str = ""
    rule: str = ""
    target: str = ""
    type: str = ""
    only_matched: bool = False
    action: list[str] = field(default_factory=list)
    _compiled: re.Pattern | None = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.type == "regexp":
            self._compiled = re.compile(self.rule)

    def check(self, data: str) -> list[str]:
        """Return the values this rule extracts from ``data``."""
        if self.type == "regexp":
            return self._check_regexp(data)
        if self.type == "query":
            return self._check_query(data)
        return []

    def _check_regexp(self, data: str) -> list[str]:
        if self._compiled is None:
            return []
        values = []
        for match in self._compiled.finditer(data):
            values.append(match.group(0))
            values.extend(match.groups(default=""))
        return values

    def _check_query(self, data: str) -> list[str]:
        try:
            soup = BeautifulSoup(data, "html.parser")
            return [element.get_text() for element in soup.select(self.rule)]
        except Exception:  # an unusable selector yields nothing
            return []


@dataclass
class ScraperGroup:
    """A named set of rules loaded from one file."""

    name: str = ""
    active: bool = False
    rules: list[ScraperRule] = field(default_factory=list)


@dataclass
class Scraper:
    """Runs its rules against responses."""

    rules: list[ScraperRule] = field(default_factory=list)

    def append_from_file(self, path: str) -> None:
        """Add the valid rules of the group stored in ``path``."""
        group, _ = _read_group(path)
        self.rules.extend(group.rules)

    def execute(self, response: Response, matched: bool) -> list[ScraperResult]:
        """Apply every rule to the response and collect non-empty results."""
        results = []
        for rule in self.rules:
            if not matched and rule.only_matched:
                continue
            body = response.data.decode("utf-8", "replace")
            if rule.target == "body":
                source = body
            elif rule.target == "headers":
                source = header_string(response.headers)
            else:
                source = header_string(response.headers) + body
            values = rule.check(source)
            if values:
                results.append(
                    ScraperResult(
                        name=rule.name, type=rule.type, action=rule.action, results=values
                    )
                )
        return results


def _rule_from_dict(entry: dict) -> ScraperRule:
    return ScraperRule(
        name=str(entry.get("name", "")),
        rule=str(entry.get("rule", "")),
        target=str(entry.get("target", "")),
        type=str(entry.get("type", "")),
        only_matched=bool(entry.get("onlymatched", False)),
        action=list(entry.get("action") or []),
    )


def _read_group(path: str) -> tuple[ScraperGroup, list[Exception]]:
    """Load a group file; rules that fail to compile are returned as errors."""
    with open(path, encoding="utf-8") as fh:
        document = json.load(fh)
    if not isinstance(document, dict):
        raise ValueError("scraper group must be a JSON object")
    group = ScraperGroup(
        name=str(document.get("groupname", "")),
        active=bool(document.get("active", False)),
    )
    errors: list[Exception] = []
    for entry in document.get("rules") or []:
        try:
            group.rules.append(_rule_from_dict(entry))
        except re.error as exc:
            errors.append(exc)
    return group, errors


def from_dir(dirname: str, activestr: str) -> tuple[Scraper, list[str]]:
    """Load the active groups from the ``.json`` files in ``dirname``.

    Returns the scraper and a list of error messages for files or rules that
    could not be used.
    """
    scraper = Scraper()
    errors: list[str] = []
    active_groups = parse_active_groups(activestr)
    try:
        with os.scandir(dirname) as entries:
            files = sorted(entries, key=lambda entry: entry.name)
    except OSError as exc:
        errors.append(str(exc))
        return scraper, errors
    for entry in files:
        if not (entry.is_file(follow_symlinks=False) and entry.name.endswith(".json")):
            continue
        path = os.path.join(dirname, entry.name)
        try:
            group, rule_errors = _read_group(path)
        except (OSError, ValueError) as exc:
            errors.append(f"{path} : {exc}")
            continue
        if (group.active and is_active("all", active_groups)) or is_active(
            group.name, active_groups
        ):
            scraper.rules.extend(group.rules)
            errors.extend(f"{path} : {exc}" for exc in rule_errors)
    return scraper, errors


def header_string(headers: dict[str, list[str]]) -> str:
    """Render headers as ``Name: value`` lines."""
    return "".join(f"{name}: {value}\n" for name, values in headers.items() for value in values)


def is_active(name: str, active_groups: list[str]) -> bool:
    return name.strip().lower() in active_groups


def parse_active_groups(activestr: str) -> list[str]:
    """Split a comma separated list of group names, normalised to lower case."""
    return [item.strip().lower() for item in activestr.split(",")]