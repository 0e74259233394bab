"""Writers for saved result reports: CSV, JSON, HTML and Markdown."""

from __future__ import annotations

import base64
import csv
import json
from dataclasses import asdict, dataclass, fields, is_dataclass, replace
from datetime import datetime

from fuzzkit.models import Config, Result

STATIC_HEADERS = [
    "url",
    "redirectlocation",
    "position",
    "status_code",
    "content_length",
    "content_words",
    "content_lines",
    "content_type",
    "duration",
    "resultfile",
]

_HASH_KEYWORD = "FFUFHASH"


def _fraction(value: int, precision: int) -> tuple[int, str]:
    digits = ""
    printing = False
    for _ in range(precision):
        digit = value % 10
        printing = printing or digit != 0
        if printing:
            digits = str(digit) + digits
        value //= 10
    return value, ("." + digits if digits else "")


def format_duration(duration: int) -> str:
    """Render a nanosecond count the way durations are shown in reports, e.g. ``1.5s``."""
    if duration == 0:
        return "0s"
    sign = "-" if duration < 0 else ""
    remaining = abs(duration)
    if remaining < 1_000_000_000:
        if remaining < 1_000:
            return f"{sign}{remaining}ns"
        precision, unit = (3, "µs") if remaining < 1_000_000 else (6, "ms")
        whole, frac = _fraction(remaining, precision)
        return f"{sign}{whole}{frac}{unit}"
    whole, frac = _fraction(remaining, 9)
    text = f"{whole % 60}{frac}s"
    whole //= 60
    if whole > 0:
        text = f"{whole % 60}m{text}"
        whole //= 60
        if whole > 0:
            text = f"{whole}h{text}"
    return sign + text


def _decode(value: bytes) -> str:
    return value.decode("utf-8", "replace")


def _now() -> str:
    stamp = datetime.now().astimezone().replace(microsecond=0).isoformat()
    return stamp[:-6] + "Z" if stamp.endswith("+00:00") else stamp


def _keywords(config: Config) -> list[str]:
    return [provider.keyword for provider in config.input_providers]


def _escape(text: str) -> str:
    """Escape text for HTML in the same way the report templates always have."""
    return (
        text.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace("'", "&#39;")
        .replace('"', "&#34;")
        .replace("\x00", "\ufffd")
    )


def to_csv(result: Result) -> list[str]:
    """Return the CSV row for a result: input values followed by the fixed columns."""
    row = [_decode(value) for value in result.input.values()]
    row.extend(
        [
            result.url,
            result.redirect_location,
            str(result.position),
            str(result.status_code),
            str(result.content_length),
            str(result.content_words),
            str(result.content_lines),
            result.content_type,
            format_duration(result.duration),
            result.result_file,
        ]
    )
    return row


def write_csv(filename: str, config: Config, results: list[Result], encode: bool) -> None:
    """Write results as CSV; with ``encode`` the input values are base64 encoded."""
    with open(filename, "w", newline="", encoding="utf-8") as fh:
        writer = csv.writer(fh, lineterminator="\n")
        writer.writerow(_keywords(config) + STATIC_HEADERS)
        for result in results:
            if encode:
                result = replace(
                    result,
                    input={k: base64.b64encode(v) for k, v in result.input.items()},
                )
            writer.writerow(to_csv(result))


def _config_dict(config: Config) -> dict:
    out: dict = {}
    for item in fields(config):
        value = getattr(config, item.name)
        if item.name == "matcher_manager":
            out["matchers"] = {n: f.to_json() for n, f in value.matchers.items()}
            out["filters"] = {n: f.to_json() for n, f in value.filters.items()}
        elif is_dataclass(value):
            out[item.name] = asdict(value)
        elif isinstance(value, list):
            out[item.name] = [asdict(v) if is_dataclass(v) else v for v in value]
        else:
            out[item.name] = value
    return out


def _dump(filename: str, document: dict) -> None:
    with open(filename, "w", encoding="utf-8") as fh:
        json.dump(document, fh, ensure_ascii=False, separators=(",", ":"))


def write_json(filename: str, config: Config, results: list[Result]) -> None:
    """Write results and the job configuration as JSON with readable inputs."""
    _dump(
        filename,
        {
            "commandline": config.command_line,
            "time": _now(),
            "results": [result.to_dict() for result in results],
            "config": _config_dict(config),
        },
    )


def write_ejson(filename: str, config: Config, results: list[Result]) -> None:
    """Write results as JSON with base64 encoded input values."""
    encoded = []
    for result in results:
        entry = result.to_dict()
        entry["input"] = {
            k: base64.b64encode(v).decode("ascii") for k, v in result.input.items()
        }
        encoded.append(entry)
    _dump(
        filename,
        {
            "commandline": config.command_line,
            "time": _now(),
            "results": encoded,
            "config": None,
        },
    )


def colorize_results(results: list[Result]) -> list[Result]:
    """Return copies of the results with a row colour chosen by status class."""
    colored = []
    for result in results:
        status = result.status_code
        color = "black"
        if 200 <= status <= 299:
            color = "#adea9e"
        if 300 <= status <= 399:
            color = "#bbbbe6"
        if 400 <= status <= 499:
            color = "#d2cb7e"
        if 500 <= status <= 599:
            color = "#de8dc1"
        colored.append(replace(result, html_color=color))
    return colored


@dataclass
class _ReportRow:
    inputs: list[str]
    result: Result
    scraper: str
    ffuf_hash: str

    def cells(self) -> list[str]:
        r = self.result
        return [
            r.url,
            r.redirect_location,
            str(r.position),
            str(r.content_length),
            str(r.content_words),
            str(r.content_lines),
            r.content_type,
            format_duration(r.duration),
            r.result_file,
            self.scraper,
            self.ffuf_hash,
        ]


def _scraper_markup(data: dict[str, list[str]], escape: bool) -> str:
    conv = _escape if escape else (lambda text: text)
    return "".join(
        "<p><b>" + conv(name) + ":</b><br />" + "<br />".join(conv(v) for v in values) + "</p>"
        for name, values in data.items()
        if values
    )


def _split_inputs(result: Result) -> tuple[list[str], str | None]:
    ffuf_hash = None
    inputs = {}
    for key, value in result.input.items():
        if key == _HASH_KEYWORD:
            ffuf_hash = _decode(value)
        else:
            inputs[key] = _decode(value)
    return [inputs[key] for key in sorted(inputs)], ffuf_hash


def write_html(filename: str, config: Config, results: list[Result]) -> None:
    """Write results as an HTML report with one coloured table row per result."""
    rows = []
    for result in colorize_results(results):
        inputs, ffuf_hash = _split_inputs(result)
        rows.append(
            _ReportRow(inputs, result, _scraper_markup(result.scraper_data, True), ffuf_hash or "")
        )
    keys = _keywords(config)
    e = _escape
    out = [
        "",
        "<!DOCTYPE html>",
        "<html>",
        "  <head>",
        '    <meta http-equiv="Content-Type" content="text/html; charset=UTF-8" />',
        '    <meta name="viewport" content="width=device-width, initial-scale=1, maximum-scale=1.0" />',
        "    <title>FFUF Report - </title>",
        "    <style>",
        "      body { display: flex; min-height: 100vh; flex-direction: column; }",
        "      main { flex: 1 0 auto; }",
        "    </style>",
        "  </head>",
        "  <body>",
        '    <main class="section no-pad-bot" id="index-banner">',
        '      <div class="container">',
        '        <h1 class="header center">FFUF Report</h1>',
        '        <div class="row center">',
        f"        <pre>{e(config.command_line)}</pre>",
        f"        <pre>{e(_now())}</pre>",
        '        <table id="ffufreport">',
        "          <thead>",
        '            <div style="display:none">',
        "|result_raw|StatusCode"
        + "".join("|" + e(k) for k in keys)
        + "|Url|RedirectLocation|Position|ContentLength|ContentWords|ContentLines"
        "|ContentType|Duration|Resultfile|ScraperData|FfufHash|",
        "            </div>",
        "            <tr>",
        "              <th>Status</th>",
    ]
    out.extend(f"              <th>{e(k)}</th>" for k in keys)
    out.extend(
        f"              <th>{title}</th>"
        for title in (
            "URL",
            "Redirect location",
            "Position",
            "Length",
            "Words",
            "Lines",
            "Type",
            "Duration",
            "Resultfile",
            "Scraper data",
            "Ffuf Hash",
        )
    )
    out.extend(["            </tr>", "          </thead>", "          <tbody>"])
    for row in rows:
        r = row.result
        cells = [e(c) for c in row.cells()]
        inputs = [e(v) for v in row.inputs]
        out.append('            <div style="display:none">')
        out.append(
            f"|result_raw|{r.status_code}"
            + "".join("|" + v for v in inputs)
            + "|"
            + "|".join(cells)
            + "|"
        )
        out.append("            </div>")
        out.append(
            f'            <tr class="result-{r.status_code}" '
            f'style="background-color: {e(r.html_color)};">'
        )
        out.append(
            f'              <td><font color="black" class="status-code">{r.status_code}</font></td>'
        )
        out.extend(f"              <td>{v}</td>" for v in inputs)
        out.append(f'              <td><a href="{cells[0]}">{cells[0]}</a></td>')
        out.append(f'              <td><a href="{cells[1]}">{cells[1]}</a></td>')
        out.extend(f"              <td>{c}</td>" for c in cells[2:])
        out.append("            </tr>")
    out.extend(
        [
            "          </tbody>",
            "        </table>",
            "        </div>",
            "      </div>",
            "    </main>",
            "  </body>",
            "</html>",
            "",
        ]
    )
    with open(filename, "w", encoding="utf-8") as fh:
        fh.write("\n".join(out))


def write_markdown(filename: str, config: Config, results: list[Result]) -> None:
    """Write results as a Markdown table."""
    e = _escape
    keys = _keywords(config)
    ffuf_hash = ""
    lines = [
        "# FFUF Report",
        "",
        f"  Command line : `{e(config.command_line)}`",
        f"  Time: {e(_now())}",
        "",
        "  "
        + "".join(f"| {e(k)} " for k in keys)
        + "| URL | Redirectlocation | Position | Status Code | Content Length | Content Words"
        " | Content Lines | Content Type | Duration | ResultFile | ScraperData | Ffufhash",
        "  "
        + "| :- " * len(keys)
        + "| :-- | :--------------- | :---- | :------- | :---------- | :------------- "
        "| :------------ | :--------- | :----------- | :------------ | :-------- |",
    ]
    body = "  "
    for result in results:
        inputs, found_hash = _split_inputs(result)
        # The hash carries over to later rows that have none of their own.
        if found_hash is not None:
            ffuf_hash = found_hash
        row = _ReportRow(inputs, result, _scraper_markup(result.scraper_data, False), ffuf_hash)
        cells = [e(c) for c in row.cells()]
        body += (
            "".join(f"| {e(v)} " for v in row.inputs)
            + f"| {cells[0]} | {cells[1]} | {cells[2]} | {result.status_code} | "
            + " | ".join(cells[3:])
            + "\n  "
        )
    with open(filename, "w", encoding="utf-8") as fh:
        fh.write("\n".join(lines) + "\n" + body)