import json
import re

import pytest

from fuzzkit.models import Response
from fuzzkit.scraper import (
    Scraper,
    ScraperRule,
    from_dir,
    header_string,
    is_active,
    parse_active_groups,
)


def _write_group(path, name, active, rules):
    path.write_text(json.dumps({"groupname": name, "active": active, "rules": rules}))


def test_regexp_rule_returns_match_and_groups():
    rule = ScraperRule(name="id", rule=r"id=(\d+)", type="regexp")
    assert rule.check("x id=42 y id=7") == ["id=42", "42", "id=7", "7"]


def test_regexp_rule_no_match():
    rule = ScraperRule(rule=r"id=(\d+)", type="regexp")
    assert rule.check("nothing here") == []


def test_invalid_regexp_rule_raises():
    with pytest.raises(re.error):
        ScraperRule(rule="a((", type="regexp")


def test_query_rule_extracts_text():
    rule = ScraperRule(rule="p.title", type="query")
    html = "<html><p class='title'>hello</p><p>other</p></html>"
    assert rule.check(html) == ["hello"]


def test_unknown_rule_type_returns_empty():
    assert ScraperRule(rule="x", type="other").check("x") == []


def test_header_string_format():
    assert header_string({"Server": ["nginx"], "X-A": ["1", "2"]}) == (
        "Server: nginx\nX-A: 1\nX-A: 2\n"
    )


def test_parse_active_groups_normalises():
    assert parse_active_groups(" Foo ,BAR") == ["foo", "bar"]
    assert is_active("  FOO ", parse_active_groups("foo"))
    assert not is_active("baz", parse_active_groups("foo"))


def test_execute_respects_target_and_matched():
    scraper = Scraper(
        rules=[
            ScraperRule(name="body", rule="secret", target="body", type="regexp"),
            ScraperRule(name="hdr", rule="nginx", target="headers", type="regexp"),
            ScraperRule(name="both", rule="nginx", target="all", type="regexp"),
            ScraperRule(
                name="only", rule="secret", target="body", type="regexp", only_matched=True
            ),
        ]
    )
    response = Response(headers={"Server": ["nginx"]}, data=b"a secret value")
    names = [r.name for r in scraper.execute(response, matched=False)]
    assert names == ["body", "hdr", "both"]
    matched = scraper.execute(response, matched=True)
    assert [r.name for r in matched] == ["body", "hdr", "both", "only"]
    assert matched[0].results == ["secret"]


def test_execute_body_rule_ignores_headers():
    scraper = Scraper(rules=[ScraperRule(name="b", rule="nginx", target="body", type="regexp")])
    response = Response(headers={"Server": ["nginx"]}, data=b"plain")
    assert scraper.execute(response, matched=True) == []


def test_from_dir_active_groups(tmp_path):
    rule = {"name": "r1", "rule": "abc", "target": "body", "type": "regexp"}
    _write_group(tmp_path / "a.json", "alpha", True, [rule])
    _write_group(tmp_path / "b.json", "beta", False, [dict(rule, name="r2")])
    scraper, errors = from_dir(str(tmp_path), "all")
    assert errors == []
    assert [r.name for r in scraper.rules] == ["r1"]

    scraper, errors = from_dir(str(tmp_path), "beta")
    assert [r.name for r in scraper.rules] == ["r2"]


def test_from_dir_reports_bad_files_and_rules(tmp_path):
    (tmp_path / "broken.json").write_text("{not json")
    _write_group(
        tmp_path / "c.json",
        "gamma",
        True,
        [
            {"name": "bad", "rule": "a((", "type": "regexp"},
            {"name": "good", "rule": "a", "type": "regexp"},
        ],
    )
    scraper, errors = from_dir(str(tmp_path), "all")
    assert [r.name for r in scraper.rules] == ["good"]
    assert len(errors) == 2
    assert any("broken.json" in e for e in errors)


def test_from_dir_missing_directory(tmp_path):
    scraper, errors = from_dir(str(tmp_path / "nope"), "all")
    assert scraper.rules == []
    assert len(errors) == 1


def test_append_from_file(tmp_path):
    path = tmp_path / "g.json"
    _write_group(path, "g", False, [{"name": "q", "rule": "h1", "type": "query"}])
    scraper = Scraper()
    scraper.append_from_file(str(path))
    assert [r.name for r in scraper.rules] == ["q"]
    response = Response(data=b"<h1>Title</h1>")
    results = scraper.execute(response, matched=True)
    assert results[0].results == ["Title"]


def test_append_from_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        Scraper().append_from_file(str(tmp_path / "missing.json"))