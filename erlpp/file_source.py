# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes and functions for reading tokens from source files,
including the stack of nested include files and pending macro expansions.
"""
from __future__ import annotations

import collections
import logging
import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from erlpp import util
from erlpp.errors import RecursiveIncludeError, UpstreamLexError
from erlpp.lexer import Lexer, Position, Token, TokenError

log = logging.getLogger(__name__)

# A token read ahead, with the expansion depth and call site it came from.
ConsumedToken = tuple[Token, int, Position | None]


class iter_putback:
    """
    An iterator wrapper that allows items to be 'put back'
    and picked up for the next iterations.
    """

    def __init__(self, iterable: Iterable) -> None:
        self.iterator = iter(iterable)
        self.pending: collections.deque = collections.deque()

    def __iter__(self) -> iter_putback:
        return self

    def __next__(self) -> Any:
        if self.pending:
            return self.pending.popleft()
        return next(self.iterator)

    def putback(self, item: Any) -> None:
        """
        Put item into the iterator such that it will be the next
        yielded item.
        """
        self.pending.appendleft(item)


class TokenSource:
    """
    Represents the tokens of a single file, or of the original input.
    """

    def __init__(
        self,
        tokens: Iterable[Token],
        filename: str | None = None,
        included_from: Position | None = None,
    ) -> None:
        self.tokens = iter_putback(tokens)
        self.filename = filename
        self.included_from = included_from

        # Set by -file; only affects the FILE and LINE macros.
        self.logical_filename = filename
        self.line_offset = 0

    def __repr__(self) -> str:
        return f"TokenSource(filename={self.filename!r})"

    def next(self) -> Token | None:
        """
        Return the next token, or None if the source is exhausted.

        Raises
        ------
        UpstreamLexError
            If the lexer fails to produce the next token.
        """
        try:
            return next(self.tokens)
        except StopIteration:
            return None
        except TokenError as e:
            raise UpstreamLexError(e.message, e.position) from e

    def peek(self) -> Token | None:
        token = self.next()
        if token is not None:
            self.tokens.putback(token)
        return token

    def set_file(self, filename: str, line: int, directive_line: int) -> None:
        """
        Report the line after `directive_line` as `line` of `filename`.
        """
        self.logical_filename = filename
        self.line_offset = line - (directive_line + 1)

    def logical_line(self, line: int) -> int:
        return line + self.line_offset


def open_file_source(
    path: str | os.PathLike[str],
    included_from: Position | None = None,
) -> TokenSource:
    """
    Read the file at `path` and return a TokenSource lexing its contents.

    The file is read in full, so no handle is held while its tokens are
    consumed.

    Raises
    ------
    OSError
        If the file cannot be read.
    """
    with open(path, encoding="utf-8") as fp:
        text = fp.read()
    filename = str(path)
    return TokenSource(Lexer(text, filename), filename, included_from)


class InclusionStack:
    """
    Represents the nested sources opened by -include and -include_lib.
    The bottom of the stack is the original input and is never popped.
    """

    def __init__(self, source: TokenSource, max_depth: int = 200) -> None:
        self.sources = [source]
        self.max_depth = max_depth

    def __len__(self) -> int:
        return len(self.sources)

    @property
    def current(self) -> TokenSource:
        return self.sources[-1]

    def push(self, source: TokenSource) -> None:
        """
        Make `source` the current source until it is exhausted.

        Raises
        ------
        RecursiveIncludeError
            If the inclusion depth exceeds the maximum.
        """
        if len(self.sources) > self.max_depth:
            raise RecursiveIncludeError(
                f"Include depth exceeds {self.max_depth} while including "
                + f"'{source.filename}'.",
                source.included_from,
            )
        self.sources.append(source)
        log.debug(f"Entering {source.filename}")

    def pop(self) -> bool:
        """
        Pop an exhausted include file.
        Return False if only the original input is left.
        """
        if len(self.sources) == 1:
            return False
        source = self.sources.pop()
        log.debug(f"Leaving {source.filename}")
        return True

    def read(self, *, pop: bool = True) -> Token | None:
        """
        Return the next token, resuming the including file when an include
        file is exhausted. With `pop=False`, stop at the end of the current
        source instead.
        """
        while True:
            token = self.current.next()
            if token is not None or not pop or not self.pop():
                return token

    def peek(self) -> Token | None:
        """
        Return the next token without consuming it. Exhausted include files
        stay open until the next read.
        """
        for source in reversed(self.sources):
            token = source.peek()
            if token is not None:
                return token
        return None

    def clear(self) -> None:
        del self.sources[1:]
        self.sources[0] = TokenSource([], self.sources[0].filename)


@dataclass
class ExpansionFrame:
    """
    Represents the tokens of one macro expansion still waiting to be read.
    """

    tokens: collections.deque[Token]
    name: str | None

    # Number of nested expansions this frame sits in.
    depth: int

    # Position of the outermost macro call that led to this frame.
    call_site: Position | None


class TokenReader:
    """
    Class to act as the token stream seen by the preprocessor: pending
    macro expansions are read before the current source file.
    """

    def __init__(self, inclusion: InclusionStack) -> None:
        self.inclusion = inclusion
        self.frames: list[ExpansionFrame] = []

        # Describe the frame that supplied the most recent token.
        self.depth = 0
        self.call_site: Position | None = None

    def from_source(self) -> bool:
        """
        Return True if the most recent token came straight from a source
        file rather than from a macro expansion.
        """
        return self.depth == 0

    def read(self, *, pop: bool = True) -> Token | None:
        """
        Consume and return the next token, or None at the end of input.
        """
        while self.frames:
            frame = self.frames[-1]
            if frame.tokens:
                self.depth = frame.depth
                self.call_site = frame.call_site
                return frame.tokens.popleft()
            self.frames.pop()
        self.depth = 0
        self.call_site = None
        return self.inclusion.read(pop=pop)

    def peek(self) -> Token | None:
        """
        Return the next token without consuming it.
        """
        for frame in reversed(self.frames):
            if frame.tokens:
                return frame.tokens[0]
        return self.inclusion.peek()

    def push(
        self,
        tokens: Iterable[Token],
        name: str | None,
        depth: int,
        call_site: Position | None,
    ) -> None:
        """
        Push tokens to be read before anything else.
        """
        self.frames.append(
            ExpansionFrame(collections.deque(tokens), name, depth, call_site),
        )

    def unread(self, consumed: list[ConsumedToken]) -> None:
        """
        Put back tokens read ahead, each at the expansion depth and call
        site it was read at.
        """
        for token, depth, call_site in reversed(consumed):
            if depth == 0:
                self.inclusion.current.tokens.putback(token)
                continue
            top = self.frames[-1] if self.frames else None
            if (
                top is not None
                and top.name is None
                and top.depth == depth
                and top.call_site == call_site
            ):
                top.tokens.appendleft(token)
            else:
                self.push([token], None, depth, call_site)

    def clear(self) -> None:
        self.frames = []
        self.inclusion.clear()


class IncludeFinder:
    """
    Resolves the paths named by -include and -include_lib directives.
    """

    def __init__(
        self,
        include_paths: list[str | os.PathLike[str]] | None = None,
        code_paths: list[str | os.PathLike[str]] | None = None,
    ) -> None:
        self.include_paths = [Path(p) for p in include_paths or []]
        self.code_paths = [Path(p) for p in code_paths or []]
        self._found_incl: dict[tuple[str, str], Path | None] = {}

    def find_include(
        self,
        filename: str,
        this_path: str | os.PathLike[str] | None,
    ) -> Path | None:
        """
        Determine and return the full path to `filename`.

        Parameters
        ----------
        filename: str
            The name of the include file to find.

        this_path: str | os.PathLike[str] | None
            The directory of the including file, searched before the
            include paths. None means the current working directory.

        Returns
        -------
        Path | None
            The full path to `filename` if it was found and `None` otherwise.
        """
        if not util.valid_path(filename):
            return None

        this_dir = Path(this_path) if this_path is not None else Path.cwd()
        key = (filename, str(this_dir))
        if key in self._found_incl:
            return self._found_incl[key]

        path = util.substitute_path_variables(filename)
        for directory in [this_dir] + self.include_paths:
            test_path = Path(os.path.abspath(directory / path))
            if test_path.is_file():
                self._found_incl[key] = test_path
                return test_path

        self._found_incl[key] = None
        return None

    def find_include_lib(
        self,
        filename: str,
        this_path: str | os.PathLike[str] | None,
    ) -> Path | None:
        """
        Determine and return the full path to `filename`, whose first
        component names an application found in the code paths as either
        `App` or `App-Version`.

        Returns
        -------
        Path | None
            The full path to `filename` if it was found and `None` otherwise.
        """
        found = self.find_include(filename, this_path)
        if found is not None:
            return found

        parts = util.substitute_path_variables(filename).parts
        if len(parts) < 2:
            return None
        app, rest = parts[0], parts[1:]

        for root in self.code_paths:
            candidates = [root / app] + sorted(root.glob(f"{app}-*"))
            for app_dir in candidates:
                test_path = app_dir.joinpath(*rest)
                if test_path.is_file():
                    return Path(os.path.abspath(test_path))
        return None
