"""Terminal output of progress, messages and results, and saving of reports."""

from __future__ import annotations

import hashlib
import json
import os
import sys
import time

from fuzzkit.models import Config, Progress, Request, Response, Result
from fuzzkit.reports import (
    write_csv,
    write_ejson,
    write_html,
    write_json,
    write_markdown,
)

if os.name == "nt":
    TERMINAL_CLEAR_LINE = "\r\r"
    ANSI_CLEAR = ""
    ANSI_RED = ""
    ANSI_GREEN = ""
    ANSI_BLUE = ""
    ANSI_YELLOW = ""
else:
    TERMINAL_CLEAR_LINE = "\r\x1b[2K"
    ANSI_CLEAR = "\x1b[0m"
    ANSI_RED = "\x1b[31m"
    ANSI_GREEN = "\x1b[32m"
    ANSI_BLUE = "\x1b[34m"
    ANSI_YELLOW = "\x1b[33m"

BANNER_SEP = ""

_REQUEST_SEPARATOR = "\n---- ↑ Request ---- Response ↓ ----\n\n"


def _stderr(text: str) -> None:
    sys.stderr.write(text)
    sys.stderr.flush()


def _print_option(name: str, value: str) -> None:
    _stderr(f" :: {name:<16} : {value}\n")


def _redirect_location(response: Response) -> str:
    for name, values in response.headers.items():
        if name.lower() == "location" and values:
            return values[0]
    return ""


class StdOutput:
    """Writes to the terminal and keeps the results of the running jobs."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self.results: list[Result] = []
        self.current_results: list[Result] = []
        self.fuzz_keywords = sorted(p.keyword for p in config.input_providers)

    def banner(self) -> None:
        """Print a summary of the job configuration to standard error."""
        config = self.config
        _print_option("Method", config.method)
        _print_option("URL", config.url)
        for provider in config.input_providers:
            if provider.name == "wordlist":
                _print_option("Wordlist", f"{provider.keyword}: {provider.value}")
        if config.data:
            _print_option("Data", config.data)
        if config.extensions:
            _print_option("Extensions", "".join(f"{ext} " for ext in config.extensions))
        if config.output_file:
            output_file = config.output_file
            if config.output_format == "all":
                output_file += ".{json,ejson,html,md,csv,ecsv}"
            _print_option("Output file", output_file)
            _print_option("File format", config.output_format)
        if config.proxy_url:
            _print_option("Proxy", config.proxy_url)
        if config.replay_proxy_url:
            _print_option("ReplayProxy", config.replay_proxy_url)
        delay = config.delay
        if delay.has_delay:
            if delay.is_range:
                text = f"{delay.min:.2f} - {delay.max:.2f} seconds"
            else:
                text = f"{delay.min:.2f} seconds"
            _print_option("Delay", text)
        for matcher in config.matcher_manager.matchers.values():
            _print_option("Matcher", matcher.verbose_repr())
        for flt in config.matcher_manager.filters.values():
            _print_option("Filter", flt.verbose_repr())
        _stderr(f"{BANNER_SEP}\n\n")

    def reset(self) -> None:
        """Clear the results of the current job."""
        self.current_results = []

    def cycle(self) -> None:
        """Move the current job's results to the overall results."""
        self.results.extend(self.current_results)
        self.reset()

    def progress(self, status: Progress) -> None:
        """Print the progress line, unless in quiet mode."""
        if self.config.quiet:
            return
        elapsed = max(0, int(time.time() - status.started_at))
        req_rate = status.req_sec if elapsed > 0 else 0
        hours, rest = divmod(elapsed, 3600)
        mins, secs = divmod(rest, 60)
        _stderr(
            f"{TERMINAL_CLEAR_LINE}:: Progress: [{status.req_count}/{status.req_total}] "
            f":: Job [{status.queue_pos}/{status.queue_total}] :: {req_rate} req/sec "
            f":: Duration: [{hours}:{mins:02d}:{secs:02d}] :: Errors: {status.error_count} ::"
        )

    def _message(self, label: str, color: str, message: str, trailer: str) -> None:
        if self.config.quiet:
            _stderr(message)
        elif not self.config.colors:
            _stderr(f"{TERMINAL_CLEAR_LINE}[{label}] {message}{trailer}")
        else:
            _stderr(f"{TERMINAL_CLEAR_LINE}[{color}{label}{ANSI_CLEAR}] {message}{trailer}")

    def info(self, message: str) -> None:
        self._message("INFO", ANSI_BLUE, message, "\n\n")

    def error(self, message: str) -> None:
        self._message("ERR", ANSI_RED, message, "\n")

    def warning(self, message: str) -> None:
        self._message("WARN", ANSI_RED, message, "\n")

    def raw(self, output: str) -> None:
        _stderr(f"{TERMINAL_CLEAR_LINE}{output}")

    def _write_to_all(self, results: list[Result]) -> None:
        base = self.config.output_file
        writers = (
            (".json", lambda name: write_json(name, self.config, results)),
            (".ejson", lambda name: write_ejson(name, self.config, results)),
            (".html", lambda name: write_html(name, self.config, results)),
            (".md", lambda name: write_markdown(name, self.config, results)),
            (".csv", lambda name: write_csv(name, self.config, results, False)),
            (".ecsv", lambda name: write_csv(name, self.config, results, True)),
        )
        for suffix, writer in writers:
            self.config.output_file = base + suffix
            try:
                writer(self.config.output_file)
            except OSError as exc:
                self.error(str(exc))

    def save_file(self, filename: str, fmt: str) -> None:
        """Save all results to ``filename`` in the given format."""
        if self.config.output_skip_empty_file and not self.results:
            self.info("No results and -or defined, output file not written.")
            return
        results = self.results + self.current_results
        if fmt == "all":
            self._write_to_all(results)
        elif fmt == "json":
            write_json(filename, self.config, results)
        elif fmt == "ejson":
            write_ejson(filename, self.config, results)
        elif fmt == "html":
            write_html(filename, self.config, results)
        elif fmt == "md":
            write_markdown(filename, self.config, results)
        elif fmt == "csv":
            write_csv(filename, self.config, results, False)
        elif fmt == "ecsv":
            write_csv(filename, self.config, results, True)

    def finalize(self) -> None:
        """Write the configured output file once all jobs are done."""
        if self.config.output_file:
            try:
                self.save_file(self.config.output_file, self.config.output_format)
            except OSError as exc:
                self.error(str(exc))
        _stderr("\n")

    def result(self, response: Response) -> None:
        """Record a matched response and print it."""
        request = response.request or Request()
        if self.config.output_directory:
            response.result_file = self._write_result_to_file(response, request)
        result = Result(
            input=dict(request.input),
            position=request.position,
            status_code=response.status_code,
            content_length=response.content_length,
            content_words=response.content_words,
            content_lines=response.content_lines,
            content_type=response.content_type,
            redirect_location=_redirect_location(response),
            scraper_data=response.scraper_data,
            url=request.url,
            duration=response.duration,
            result_file=response.result_file,
            host=request.host,
        )
        self.current_results.append(result)
        self.print_result(result)

    def _write_result_to_file(self, response: Response, request: Request) -> str:
        directory = self.config.output_directory
        try:
            os.makedirs(directory, mode=0o750, exist_ok=True)
        except OSError as exc:
            self.error(str(exc))
            return ""
        content = f"{request.raw}{_REQUEST_SEPARATOR}{response.raw}".encode("utf-8")
        name = hashlib.md5(content).hexdigest()
        path = os.path.join(directory, name)
        try:
            fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o640)
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
        except OSError as exc:
            self.error(str(exc))
        return name

    def print_result(self, result: Result) -> None:
        """Print a result in the style chosen by the configuration."""
        config = self.config
        if config.json:
            self._result_json(result)
        elif config.quiet:
            print(self._inputs_one_line(result))
        elif (
            len(self.fuzz_keywords) > 1
            or config.verbose
            or config.output_directory
            or result.scraper_data
        ):
            self._result_multiline(result)
        else:
            self._result_normal(result)

    def _input_text(self, result: Result, keyword: str) -> str:
        if keyword in self.config.command_keywords:
            return str(result.position)
        return result.input.get(keyword, b"").decode("utf-8", "replace")

    def _inputs_one_line(self, result: Result) -> str:
        if len(self.fuzz_keywords) > 1:
            return "".join(
                f"{k} : {self._input_text(result, k)} " for k in self.fuzz_keywords
            )
        text = ""
        for keyword in self.fuzz_keywords:
            text = self._input_text(result, keyword)
        return text

    def _summary(self, result: Result) -> str:
        return (
            f"[Status: {result.status_code}, Size: {result.content_length}, "
            f"Words: {result.content_words}, Lines: {result.content_lines}, "
            f"Duration: {result.duration // 1_000_000}ms]"
        )

    def _result_multiline(self, result: Result) -> None:
        header = (
            f"{TERMINAL_CLEAR_LINE}{self._colorize(result.status_code)}"
            f"{self._summary(result)}{ANSI_CLEAR}"
        )
        lines = []
        if self.config.verbose:
            lines.append(f"{TERMINAL_CLEAR_LINE}| URL | {result.url}\n")
            if result.redirect_location:
                lines.append(f"{TERMINAL_CLEAR_LINE}| --> | {result.redirect_location}\n")
        if result.result_file:
            lines.append(f"{TERMINAL_CLEAR_LINE}| RES | {result.result_file}\n")
        for keyword in self.fuzz_keywords:
            lines.append(
                f"{TERMINAL_CLEAR_LINE}    * {keyword}: {self._input_text(result, keyword)}\n"
            )
        if result.scraper_data:
            lines.append(f"{TERMINAL_CLEAR_LINE}| SCR |\n")
            for name, values in result.scraper_data.items():
                lines.extend(f"{TERMINAL_CLEAR_LINE}    * {name}: {v}\n" for v in values)
        sys.stdout.write(f"{header}\n{''.join(lines)}\n")

    def _result_normal(self, result: Result) -> None:
        print(
            f"{TERMINAL_CLEAR_LINE}{self._colorize(result.status_code)}"
            f"{self._inputs_one_line(result):<23} {self._summary(result)}{ANSI_CLEAR}"
        )

    def _result_json(self, result: Result) -> None:
        try:
            text = json.dumps(result.to_dict(), ensure_ascii=False, separators=(",", ":"))
        except (TypeError, ValueError) as exc:
            self.error(str(exc))
            return
        _stderr(TERMINAL_CLEAR_LINE)
        print(text)

    def _colorize(self, status: int) -> str:
        if not self.config.colors:
            return ""
        if 200 <= status < 300:
            return ANSI_GREEN
        if 300 <= status < 400:
            return ANSI_BLUE
        if 400 <= status < 500:
            return ANSI_YELLOW
        if 500 <= status < 600:
            return ANSI_RED
        return ANSI_CLEAR


def new_output_provider(name: str, config: Config) -> StdOutput:
    """Return the output provider for ``name``; the terminal one is the only kind."""
    return StdOutput(config)