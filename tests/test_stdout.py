import hashlib
import json
import os
import time

from fuzzkit.models import Config, InputProviderConfig, Progress, Request, Response, Result
from fuzzkit.stdout import (
    ANSI_CLEAR,
    ANSI_GREEN,
    ANSI_RED,
    TERMINAL_CLEAR_LINE,
    StdOutput,
    new_output_provider,
)


def make_config(**kwargs):
    providers = kwargs.pop(
        "input_providers", [InputProviderConfig("wordlist", "FUZZ", "words.txt")]
    )
    return Config(input_providers=providers, **kwargs)


def make_response(status=200, word=b"admin", headers=None):
    return Response(
        status_code=status,
        headers=headers or {},
        data=b"hello",
        content_length=5,
        content_words=1,
        content_lines=1,
        request=Request(url="http://example.com/admin", input={"FUZZ": word}, position=3),
        duration=42_000_000,
    )


def test_info_plain(capsys):
    StdOutput(make_config()).info("hello")
    assert capsys.readouterr().err == TERMINAL_CLEAR_LINE + "[INFO] hello\n\n"


def test_info_quiet(capsys):
    StdOutput(make_config(quiet=True)).info("hello")
    assert capsys.readouterr().err == "hello"


def test_error_colored(capsys):
    StdOutput(make_config(colors=True)).error("boom")
    err = capsys.readouterr().err
    assert err == f"{TERMINAL_CLEAR_LINE}[{ANSI_RED}ERR{ANSI_CLEAR}] boom\n"


def test_warning_and_raw(capsys):
    out = StdOutput(make_config())
    out.warning("careful")
    out.raw("> ")
    err = capsys.readouterr().err
    assert err == f"{TERMINAL_CLEAR_LINE}[WARN] careful\n{TERMINAL_CLEAR_LINE}> "


def test_cycle_and_reset():
    out = StdOutput(make_config())
    out.current_results = [Result(status_code=200)]
    out.cycle()
    assert out.results == [Result(status_code=200)]
    assert out.current_results == []
    out.current_results = [Result(status_code=404)]
    out.reset()
    assert out.current_results == []
    assert len(out.results) == 1


def test_result_records_and_prints(capsys):
    out = StdOutput(make_config())
    out.result(make_response(headers={"Location": ["/next"]}))
    assert len(out.current_results) == 1
    res = out.current_results[0]
    assert res.redirect_location == "/next"
    assert res.input == {"FUZZ": b"admin"}
    assert res.position == 3
    stdout = capsys.readouterr().out
    assert "admin" in stdout
    assert "[Status: 200, Size: 5, Words: 1, Lines: 1, Duration: 42ms]" in stdout


def test_colored_result_starts_with_green(capsys):
    out = StdOutput(make_config(colors=True))
    out.result(make_response(status=200))
    assert capsys.readouterr().out.startswith(TERMINAL_CLEAR_LINE + ANSI_GREEN)


def test_quiet_prints_only_input(capsys):
    out = StdOutput(make_config(quiet=True))
    out.result(make_response())
    assert capsys.readouterr().out == "admin\n"


def test_json_output_matches_result_dict(capsys):
    out = StdOutput(make_config(json=True))
    out.result(make_response())
    parsed = json.loads(capsys.readouterr().out)
    assert parsed == out.current_results[0].to_dict()


def test_multiline_for_several_keywords(capsys):
    config = make_config(
        input_providers=[
            InputProviderConfig("wordlist", "FUZZ", "a"),
            InputProviderConfig("command", "CMD", "echo"),
        ],
        command_keywords=["CMD"],
    )
    out = StdOutput(config)
    out.print_result(Result(input={"FUZZ": b"word"}, position=7, status_code=200))
    stdout = capsys.readouterr().out
    assert "    * FUZZ: word\n" in stdout
    assert "    * CMD: 7\n" in stdout


def test_result_file_written(tmp_path, capsys):
    directory = tmp_path / "out"
    out = StdOutput(make_config(output_directory=str(directory)))
    response = make_response()
    response.request.raw = "REQ"
    response.raw = "RESP"
    out.result(response)
    name = out.current_results[0].result_file
    content = (directory / name).read_bytes()
    assert name == hashlib.md5(content).hexdigest()
    assert content.startswith(b"REQ\n") and content.endswith(b"RESP")
    assert f"| RES | {name}" in capsys.readouterr().out


def test_save_file_json(tmp_path, capsys):
    out = StdOutput(make_config())
    out.results = [Result(status_code=200, url="http://example.com/a")]
    out.current_results = [Result(status_code=301, url="http://example.com/b")]
    target = tmp_path / "report.json"
    out.save_file(str(target), "json")
    document = json.loads(target.read_text(encoding="utf-8"))
    assert [r["url"] for r in document["results"]] == [
        "http://example.com/a",
        "http://example.com/b",
    ]


def test_save_file_skips_empty(tmp_path, capsys):
    out = StdOutput(make_config(output_skip_empty_file=True))
    target = tmp_path / "report.json"
    out.save_file(str(target), "json")
    assert not target.exists()
    assert "output file not written" in capsys.readouterr().err


def test_save_file_all_formats(tmp_path):
    base = str(tmp_path / "report")
    out = StdOutput(make_config(output_file=base, output_format="all"))
    out.results = [Result(status_code=200, input={"FUZZ": b"x"})]
    out.save_file(base, "all")
    for suffix in (".json", ".ejson", ".html", ".md", ".csv", ".ecsv"):
        assert os.path.exists(base + suffix)
    assert out.config.output_file == base + ".ecsv"


def test_finalize_writes_output(tmp_path, capsys):
    target = tmp_path / "final.csv"
    out = StdOutput(make_config(output_file=str(target), output_format="csv"))
    out.current_results = [Result(status_code=200, input={"FUZZ": b"x"})]
    out.finalize()
    lines = target.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("FUZZ,url,")
    assert len(lines) == 2
    assert capsys.readouterr().err.endswith("\n")


def test_progress_quiet_silent(capsys):
    StdOutput(make_config(quiet=True)).progress(Progress())
    assert capsys.readouterr().err == ""


def test_progress_line(capsys):
    status = Progress(started_at=time.time(), req_count=3, req_total=10, queue_pos=1, queue_total=2)
    StdOutput(make_config()).progress(status)
    err = capsys.readouterr().err
    assert "Progress: [3/10]" in err
    assert "Job [1/2]" in err
    assert "Errors: 0 ::" in err


def test_banner_lists_config(capsys):
    config = make_config(method="POST", url="http://example.com/FUZZ")
    config.matcher_manager.add_filter("status", "404", False)
    StdOutput(config).banner()
    err = capsys.readouterr().err
    assert "POST" in err
    assert "http://example.com/FUZZ" in err
    assert "FUZZ: words.txt" in err
    assert "Response status: 404" in err


def test_new_output_provider():
    config = make_config()
    out = new_output_provider("stdout", config)
    assert isinstance(out, StdOutput)
    assert out.config is config
    assert out.fuzz_keywords == ["FUZZ"]