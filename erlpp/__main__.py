# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Command-line interface for the Erlang macro preprocessor.
"""
from __future__ import annotations

import argparse
import logging
import sys

from erlpp import finder
from erlpp.lexer import Token
from erlpp.preprocessor import is_symbol

log = logging.getLogger("erlpp")

version = "1.0.0"


def _help_string(*lines: str, is_long: bool = False) -> str:
    """
    Join the provided lines into a help string, ending in a period.
    """
    result = " ".join(lines)
    if not result.endswith("."):
        result += "."
    if is_long:
        result += "\n "
    return result


def respell(tokens: list[Token]) -> str:
    """
    Return source text for `tokens`, with one form per line.
    """
    out = []
    previous = None
    for token in tokens:
        if previous is not None:
            if is_symbol(previous, "."):
                out.append("\n")
            elif token.prev_white:
                out.append(" ")
        out.append(token.text)
        previous = token
    if out:
        out.append("\n")
    return "".join(out)


def _configure_logging(verbosity: int) -> None:
    level = max(logging.WARNING - 10 * verbosity, logging.DEBUG)
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    log.setLevel(level)
    log.addHandler(handler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="erlpp",
        description="Erlang Macro Preprocessor (erlpp) " + version,
        formatter_class=argparse.RawTextHelpFormatter,
        add_help=False,
    )
    parser.add_argument(
        "-h",
        "--help",
        action="help",
        help=_help_string("Display help message and exit."),
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"erlpp {version}",
        help=_help_string("Display version information and exit."),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        action="count",
        default=0,
        help=_help_string(
            "Increase verbosity level.",
            "May be repeated.",
        ),
    )
    parser.add_argument(
        "sources",
        metavar="<source>",
        nargs="+",
        help=_help_string(
            "Source files to preprocess.",
            "Directories are searched for .erl and .hrl files.",
            is_long=True,
        ),
    )
    parser.add_argument(
        "-I",
        "--include-path",
        dest="include_paths",
        metavar="<path>",
        action="append",
        default=[],
        help=_help_string("Add a directory searched by -include."),
    )
    parser.add_argument(
        "-L",
        "--libs",
        dest="code_paths",
        metavar="<path>",
        action="append",
        default=[],
        help=_help_string(
            "Add a directory of applications searched by -include_lib.",
        ),
    )
    parser.add_argument(
        "-D",
        dest="defines",
        metavar="<name>[=<value>]",
        action="append",
        default=[],
        help=_help_string(
            "Define a macro, as if by -define.",
            "Without a value the macro is defined as 'true'.",
        ),
    )
    parser.add_argument(
        "--module",
        dest="module_name",
        metavar="<name>",
        default=None,
        help=_help_string("Set the value of the MODULE macro."),
    )
    parser.add_argument(
        "--max-depth",
        dest="max_depth",
        metavar="<depth>",
        type=int,
        default=200,
        help=_help_string(
            "Set the maximum nesting of macro expansions and include files.",
        ),
    )

    output = parser.add_mutually_exclusive_group()
    output.add_argument(
        "--silent",
        action="store_true",
        help=_help_string("Do not print the preprocessed tokens."),
    )
    output.add_argument(
        "--spelling",
        action="store_true",
        help=_help_string("Print the preprocessed tokens as source text."),
    )
    parser.add_argument(
        "--summary",
        action="store_true",
        help=_help_string("Print a summary line for each file."),
    )
    parser.add_argument(
        "--progress",
        action="store_true",
        help=_help_string("Display a progress bar."),
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    if args.max_depth < 1:
        parser.error("--max-depth must be a positive integer.")

    sources = finder.find_sources(args.sources, show_progress=args.progress)
    results = finder.preprocess_files(
        sources,
        include_paths=args.include_paths,
        code_paths=args.code_paths,
        defines=args.defines,
        module_name=args.module_name,
        max_depth=args.max_depth,
        show_progress=args.progress,
    )

    for result in results:
        if args.spelling:
            sys.stdout.write(respell(result.tokens))
        elif not args.silent:
            for token in result.tokens:
                sys.stdout.write(f"[{token.position}] {token.text}\n")

        if args.summary:
            status = "ok" if result.ok else "failed"
            sys.stdout.write(
                f"{result.filename}: {len(result.tokens)} tokens, "
                + f"{len(result.warnings)} warnings, {status}\n",
            )

    if any(not result.ok for result in results):
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
