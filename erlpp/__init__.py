# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
A macro preprocessor for Erlang token streams.
"""
from erlpp.errors import PreprocessError
from erlpp.file_source import IncludeFinder
from erlpp.lexer import Lexer, Position, Token, TokenError
from erlpp.preprocessor import Preprocessor, preprocess_string

__all__ = [
    "IncludeFinder",
    "Lexer",
    "Position",
    "PreprocessError",
    "Preprocessor",
    "Token",
    "TokenError",
    "preprocess_string",
]
