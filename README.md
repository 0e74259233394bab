# fuzzkit

Building blocks for fuzzing web applications. The package can:

- feed keywords such as `FUZZ` from wordlists or from the output of shell commands,
- fill those keywords into an HTTP request and send it,
- decide which responses to keep with matchers and filters,
- pull data out of responses with scraper rules,
- print results to the terminal and save them as JSON, CSV, HTML or Markdown reports.

## Modules

| Module | Purpose |
| --- | --- |
| `fuzzkit.models` | `Config`, `InputProviderConfig`, `Delay`, `Request`, `Response`, `ScraperResult`, `Result`, `Progress` |
| `fuzzkit.filters` | Status, size, word, line, regexp and time filters, `new_filter_by_name` and `MatcherManager` |
| `fuzzkit.inputs` | `WordlistInput`, `CommandInput` and the combining `InputProvider` |
| `fuzzkit.scraper` | `Scraper` with regexp and CSS-query rules, loaded from JSON rule groups |
| `fuzzkit.reports` | `write_json`, `write_ejson`, `write_csv`, `write_html`, `write_markdown`, `to_csv`, `format_duration` |
| `fuzzkit.stdout` | `StdOutput`: banner, progress line, messages, result printing and saving of report files |
| `fuzzkit.runner` | `SimpleRunner`: fills keywords into a request, performs it and measures the response |

## Filters and matchers

A filter value is a comma-separated list of numbers and `N-M` ranges. Status filters
also accept `all`. Time filters take `>N` or `<N` in milliseconds. Regexp filters
search the response headers and body; a keyword in the pattern is replaced by the
escaped input value of the request.

```python
from fuzzkit.filters import MatcherManager, new_filter_by_name, parse_value_range

status = new_filter_by_name("status", "200,301,400-410")
print(status.value_repr())     # 200,301,400-410
print(status.verbose_repr())   # Response status: 200,301,400-410
print(status.to_json())        # {'value': '200,301,400-410'}

print(parse_value_range("5-90"))   # 5-90

manager = MatcherManager()
manager.add_matcher("status", "200")
manager.add_filter("size", "0", False)
manager.add_filter("size", "1234", False)   # extended: size filter is now "0,1234"
manager.add_filter("size", "42", True)      # replaced: size filter is now "42"
manager.remove_filter("size")
```

An invalid value, or an unknown filter name, raises `FilterError`.
`MatcherManager` also keeps per-host filters (`add_per_domain_filter`,
`filters_for_domain`) and a calibrated flag per host (`set_calibrated_for_host`,
`calibrated_for_domain`).

## Inputs

`InputProvider(config)` builds one input per entry of `config.input_providers`:
a `CommandInput` for the name `command`, a `WordlistInput` for anything else.
The input mode is `clusterbomb` (every combination), `pitchfork` (lists in lockstep,
shorter ones wrap around) or `sniper`; any other mode, or a wordlist that cannot be
read, raises `InputError`.

```python
from fuzzkit.inputs import InputProvider
from fuzzkit.models import Config, InputProviderConfig

config = Config(
    input_mode="clusterbomb",
    input_providers=[
        InputProviderConfig("wordlist", "FUZZ", "words.txt"),
        InputProviderConfig("wordlist", "EXT", "exts.txt"),
    ],
)
provider = InputProvider(config)
while provider.next():
    print(provider.value())   # {'FUZZ': b'...', 'EXT': b'...'}
```

A wordlist is read from a file, or from standard input when the path is `-`.
With `config.extensions` set, each word of the `FUZZ` list is followed by the word
with every extension appended; with `dir_search_compat`, `%EXT%` in a line is
replaced by each extension instead. With `ignore_wordlist_comments`, comment lines
are dropped and anything after ` #` is cut off:

```python
from fuzzkit.inputs import strip_comments

strip_comments("admin # login page")   # "admin"
strip_comments("# a comment")          # None
```

A `CommandInput` runs its command through the shell (`/bin/sh -c`, or `cmd.exe /C`
on Windows, or `config.input_shell`) once per value, with `FFUF_NUM` set to the
position, and supplies `config.input_num` values.

## Requests

```python
from fuzzkit.models import Config, Request
from fuzzkit.runner import SimpleRunner

runner = SimpleRunner(Config(timeout=10), replay=False)
base = Request(method="GET", url="http://localhost:8000/FUZZ")
req = runner.prepare({"FUZZ": b"admin"}, base)
print(runner.dump(req).decode())
response = runner.execute(req)
print(response.status_code, response.content_length, response.content_words)
```

Keywords are replaced in the method, header names and values, URL and body.
Certificates are not verified, redirects are followed only with
`config.follow_redirects`, and bodies announced larger than 5 MiB (or any body with
`config.ignore_body`) are not downloaded. Failures to connect raise
`requests.RequestException`.

## Scrapers

A rule group is a JSON file with `groupname`, `active` and a list of `rules`, each
with `name`, `rule`, `target` (`body`, `headers`, or anything else for both),
`type` (`regexp` or `query`), `onlymatched` and `action`.
`from_dir(dirname, activestr)` loads the `.json` files of a directory and returns the
scraper together with a list of error messages; a group is used when its name is
listed in `activestr`, or when it is active and `activestr` contains `all`.
`Scraper.execute(response, matched)` returns one `ScraperResult` per rule that found
something.

## Output and reports

`StdOutput(config)` prints results to standard output and messages, the banner and
the progress line to standard error. `save_file(filename, fmt)` writes all results in
the format `json`, `ejson` (base64 inputs), `html`, `md`, `csv`, `ecsv` (base64
inputs), or in every format with `all`, adding the matching suffix to
`config.output_file`. With `config.output_directory` set, each request and response
pair is also written to a file named by its MD5 hash.

## What the package does not do

There is no command-line program: no argument parsing and no entry point to run.
It has no job queue, no interactive console, no rate limiting, no request delay
handling and no automatic calibration logic. `Config.delay`, `Config.rate` and the
calibration flags of `MatcherManager` are only stored and shown; a caller drives
inputs, runner, filters and output itself.