"""Input providers that supply fuzzing payloads for keywords."""

from __future__ import annotations

import os
import re
import subprocess
import sys

from fuzzkit.models import Config, InputProviderConfig

if os.name == "nt":
    SHELL_CMD = "cmd.exe"
    SHELL_ARG = "/C"
else:
    SHELL_CMD = "/bin/sh"
    SHELL_ARG = "-c"

INPUT_MODES = ("clusterbomb", "pitchfork", "sniper")

_EXT_RE = re.compile(r"%ext%", re.IGNORECASE)


class InputError(Exception):
    """Raised when the input providers cannot be set up."""

    def __init__(self, *messages: str) -> None:
        super().__init__("\n".join(messages))
        self.messages = list(messages)


def strip_comments(text: str) -> str | None:
    """Remove a trailing `` #`` comment; return None for a comment-only line."""
    if text.lstrip(" ").startswith("#"):
        return None
    index = text.find(" #")
    return text if index == -1 else text[:index]


def _split_lines(raw: bytes) -> list[str]:
    lines = raw.decode("utf-8", "surrogateescape").split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]


class WordlistInput:
    """Supplies words read from a file, or from standard input for ``-``."""

    def __init__(self, keyword: str, value: str, config: Config) -> None:
        self.keyword = keyword
        self.config = config
        self.position = 0
        self.active = True
        if value == "-":
            raw = sys.stdin.buffer.read()
        else:
            try:
                with open(value, "rb") as fh:
                    raw = fh.read()
            except OSError as exc:
                raise InputError(str(exc)) from exc
        self.data = self._parse(raw)

    def _parse(self, raw: bytes) -> list[bytes]:
        config = self.config
        extensions = config.extensions
        words: list[str] = []
        for line in _split_lines(raw):
            if config.dir_search_compat and extensions and _EXT_RE.search(line):
                words.extend(
                    _EXT_RE.sub(lambda _m, ext=ext: ext, line) for ext in extensions
                )
                continue
            if config.ignore_wordlist_comments:
                stripped = strip_comments(line)
                if stripped is None:
                    continue
                line = stripped
            words.append(line)
            if not config.dir_search_compat and self.keyword == "FUZZ" and extensions:
                words.extend(line + ext for ext in extensions)
        return [word.encode("utf-8", "surrogateescape") for word in words]

    def has_next(self) -> bool:
        """Return True while the position points at a word."""
        return self.position < len(self.data)

    def increment_position(self) -> None:
        self.position += 1

    def reset_position(self) -> None:
        self.position = 0

    def value(self) -> bytes:
        """Return the word at the current position."""
        return self.data[self.position]

    def total(self) -> int:
        return len(self.data)


class CommandInput:
    """Supplies the standard output of a shell command, run once per value."""

    def __init__(self, keyword: str, value: str, config: Config) -> None:
        self.keyword = keyword
        self.config = config
        self.command = value
        self.position = 0
        self.active = True
        self.shell = config.input_shell or SHELL_CMD

    def has_next(self) -> bool:
        return self.position < self.config.input_num

    def increment_position(self) -> None:
        self.position += 1

    def reset_position(self) -> None:
        self.position = 0

    def value(self) -> bytes:
        """Run the command with FFUF_NUM set to the position; empty on failure."""
        env = dict(os.environ, FFUF_NUM=str(self.position))
        try:
            completed = subprocess.run(
                [self.shell, SHELL_ARG, self.command],
                stdout=subprocess.PIPE,
                stderr=subprocess.DEVNULL,
                env=env,
                check=False,
            )
        except OSError:
            return b""
        if completed.returncode != 0:
            return b""
        return completed.stdout

    def total(self) -> int:
        return self.config.input_num


class InputProvider:
    """Combines the configured inputs according to the input mode."""

    def __init__(self, config: Config) -> None:
        if config.input_mode not in INPUT_MODES:
            raise InputError(f"Input mode (-mode) {config.input_mode} not recognized")
        self.config = config
        self.providers: list[WordlistInput | CommandInput] = []
        self.position = 0
        self._msb_iterator = 0
        errors = []
        for provider in config.input_providers:
            try:
                self.add_provider(provider)
            except InputError as exc:
                errors.append(str(exc))
        if errors:
            raise InputError(*errors)

    def add_provider(self, provider: InputProviderConfig) -> None:
        """Add a command input, or a wordlist for any other provider name."""
        if provider.name == "command":
            self.providers.append(CommandInput(provider.keyword, provider.value, self.config))
        else:
            self.providers.append(WordlistInput(provider.keyword, provider.value, self.config))

    def activate_keywords(self, keywords) -> None:
        """Disable the providers whose keyword is not listed."""
        for provider in self.providers:
            if provider.keyword not in keywords:
                provider.active = False

    def keywords(self) -> list[str]:
        return [provider.keyword for provider in self.providers]

    def _active(self) -> list:
        return [provider for provider in self.providers if provider.active]

    def _iterates_combinations(self) -> bool:
        return self.config.input_mode in ("clusterbomb", "sniper")

    def set_position(self, pos: int) -> None:
        """Move the provider to a given position."""
        if self._iterates_combinations():
            self.reset()
            if pos > self.total():
                return
            while self.position < pos - 1:
                self.next()
                self.value()
        else:
            for provider in self.providers:
                provider.position = pos

    def next(self) -> bool:
        """Advance the position; return False once every input is used."""
        if self.position >= self.total():
            return False
        self.position += 1
        return True

    def value(self) -> dict[str, bytes]:
        """Return the keyword to payload mapping for the current step."""
        if self._iterates_combinations():
            return self._clusterbomb_value()
        if self.config.input_mode == "pitchfork":
            return self._pitchfork_value()
        return {}

    def reset(self) -> None:
        for provider in self.providers:
            provider.reset_position()
        self.position = 0
        self._msb_iterator = 0

    def _pitchfork_value(self) -> dict[str, bytes]:
        values = {}
        for provider in self._active():
            if not provider.has_next():
                provider.reset_position()
            values[provider.keyword] = provider.value()
            provider.increment_position()
        return values

    def _clusterbomb_value(self) -> dict[str, bytes]:
        while True:
            values = {}
            signal_next = False
            first = True
            restart = False
            for index, provider in enumerate(self._active()):
                if signal_next:
                    provider.increment_position()
                    signal_next = False
                if not provider.has_next():
                    if index == self._msb_iterator:
                        self._msb_iterator += 1
                        self._clusterbomb_iterator_reset()
                        restart = True
                        break
                    provider.reset_position()
                    signal_next = True
                values[provider.keyword] = provider.value()
                if first:
                    provider.increment_position()
                    first = False
            if not restart:
                return values

    def _clusterbomb_iterator_reset(self) -> None:
        for index, provider in enumerate(self._active()):
            if index < self._msb_iterator:
                provider.reset_position()
            if index == self._msb_iterator:
                provider.increment_position()

    def total(self) -> int:
        """Return the number of input combinations available."""
        active = self._active()
        if self.config.input_mode == "pitchfork":
            return max((provider.total() for provider in active), default=0)
        if self._iterates_combinations():
            count = 1
            for provider in active:
                count *= provider.total()
            return count
        return 0