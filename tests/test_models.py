import json

from fuzzkit.filters import MatcherManager
from fuzzkit.models import Config, Request, Result


def test_request_copy_is_independent():
    original = Request(
        method="POST",
        url="http://example.com/FUZZ",
        headers={"X-A": "1"},
        data=b"body",
        input={"FUZZ": b"x"},
        position=3,
    )
    clone = original.copy()
    assert clone == original
    clone.headers["X-B"] = "2"
    clone.input["OTHER"] = b"y"
    assert "X-B" not in original.headers
    assert "OTHER" not in original.input


def test_result_to_dict_uses_report_keys():
    result = Result(
        input={"FUZZ": b"admin"},
        position=7,
        status_code=200,
        content_length=3,
        content_words=4,
        content_lines=5,
        content_type="text/html",
        redirect_location="http://no.pe",
        url="http://as.df",
        duration=123,
        result_file="resultfile",
        host="as.df",
    )
    d = result.to_dict()
    assert set(d) == {
        "input", "position", "status", "length", "words", "lines",
        "content-type", "redirectlocation", "scraper", "duration",
        "resultfile", "url", "host",
    }
    assert d["input"] == {"FUZZ": "admin"}
    assert d["status"] == 200
    assert d["length"] == 3
    assert d["words"] == 4
    assert d["lines"] == 5
    assert d["content-type"] == "text/html"
    assert d["duration"] == 123


def test_result_to_dict_is_json_serialisable():
    result = Result(input={"FUZZ": b"\xff"}, scraper_data={"title": ["a", "b"]})
    text = json.dumps(result.to_dict())
    back = json.loads(text)
    assert back["scraper"] == {"title": ["a", "b"]}
    assert back["input"]["FUZZ"] == "\ufffd"


def test_config_has_own_matcher_manager():
    first = Config()
    second = Config()
    assert isinstance(first.matcher_manager, MatcherManager)
    first.matcher_manager.add_filter("status", "404", True)
    assert "status" in first.matcher_manager.filters
    assert second.matcher_manager.filters == {}