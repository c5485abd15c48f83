# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains functions and classes related to finding
and preprocessing source files as part of a code base.
"""

import logging
import os
from collections.abc import Generator, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tqdm import tqdm

from erlpp.errors import PreprocessError
from erlpp.file_source import IncludeFinder
from erlpp.lexer import Token
from erlpp.preprocessor import Diagnostic, Preprocessor

log = logging.getLogger(__name__)

SOURCE_SUFFIXES = (".erl", ".hrl")


@dataclass
class FileResult:
    """
    Stores the outcome of preprocessing a single file.
    `tokens` holds every token produced before `error`, if any.
    """

    filename: str
    tokens: list[Token] = field(default_factory=list)
    warnings: list[Diagnostic] = field(default_factory=list)
    module_name: str | None = None
    error: PreprocessError | OSError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def find_sources(
    paths: Iterable[str | os.PathLike[str]],
    *,
    suffixes: tuple[str, ...] = SOURCE_SUFFIXES,
    show_progress: bool = False,
) -> list[Path]:
    """
    Expand directories in `paths` into the source files they contain.

    Files named explicitly are kept regardless of their suffix. Files found
    in directories are kept if their suffix is in `suffixes`.

    Returns
    -------
    list[Path]
        The source files, in a stable order.
    """

    # Yield each candidate, and whether it was named explicitly.
    def _potential_file_generator() -> (
        Generator[tuple[Path, bool], None, None]
    ):
        for path in paths:
            path = Path(path)
            if path.is_dir():
                for f in sorted(path.rglob("*")):
                    yield f, False
            else:
                yield path, True

    filenames = []
    for f, explicit in tqdm(
        _potential_file_generator(),
        desc="Scanning for source files",
        unit=" files",
        leave=False,
        disable=not show_progress,
    ):
        if explicit or (f.is_file() and f.suffix in suffixes):
            filenames.append(f)
    return filenames


def preprocess_files(
    paths: Iterable[str | os.PathLike[str]],
    *,
    include_paths: list[str | os.PathLike[str]] | None = None,
    code_paths: list[str | os.PathLike[str]] | None = None,
    show_progress: bool = False,
    **kwargs: Any,
) -> list[FileResult]:
    """
    Preprocess each file in `paths` independently.

    Each file gets a fresh Preprocessor, so macros never leak from one file
    into the next. Include lookups are shared, so every include file is only
    searched for once. Remaining keyword arguments are passed to each
    Preprocessor.

    Returns
    -------
    list[FileResult]
        The outcome for each file, in the order given. A file that fails
        does not stop the others from being preprocessed.
    """
    finder = IncludeFinder(include_paths, code_paths)

    results = []
    for path in tqdm(
        list(paths),
        desc="Preprocessing",
        unit=" file",
        leave=False,
        disable=not show_progress,
    ):
        log.debug(f"Preprocessing {path}")
        result = FileResult(str(path))
        results.append(result)

        try:
            preprocessor = Preprocessor.from_file(
                path,
                finder=finder,
                **kwargs,
            )
        except (OSError, PreprocessError) as e:
            log.error(f"{path}: {e}")
            result.error = e
            continue

        with preprocessor:
            try:
                for token in preprocessor:
                    result.tokens.append(token)
            except PreprocessError as e:
                log.error(str(e))
                result.error = e
            result.warnings = list(preprocessor.warnings)
            result.module_name = preprocessor.module_name

    return results
