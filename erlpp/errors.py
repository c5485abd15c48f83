# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the errors reported by the preprocessor.

Every error is fatal to the token stream that raised it and records the
Position at which it was detected.
"""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from erlpp.lexer import Position


class PreprocessError(ValueError):
    """
    Represents an error encountered during preprocessing.
    """

    def __init__(self, message: str, position: Position | None = None):
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.position}: {self.message}"


class PreprocessSyntaxError(PreprocessError):
    """
    Represents a malformed directive or macro call.
    """


class MacroAlreadyDefinedError(PreprocessError):
    """
    Represents a redefinition of a macro without an intervening undef.
    """

    def __init__(
        self,
        message: str,
        position: Position | None = None,
        original: Position | None = None,
    ):
        super().__init__(message, position)
        self.original = original


class ReservedMacroError(PreprocessError):
    """
    Represents an attempt to define or undefine a predefined macro.
    """


class UndefinedMacroError(PreprocessError):
    """
    Represents a reference to a macro that is not defined.
    """


class ArityMismatchError(UndefinedMacroError):
    """
    Represents a macro call whose argument count matches no definition.
    """


class MalformedArgumentsError(PreprocessError):
    """
    Represents unbalanced brackets or missing arguments in a macro call.
    """


class RecursiveExpansionError(PreprocessError):
    """
    Represents macro expansion nested beyond the maximum depth.
    """


class MisplacedElseError(PreprocessError):
    """
    Represents an -else without an open conditional, or a second -else.
    """


class UnmatchedEndifError(PreprocessError):
    """
    Represents an -endif without an open conditional.
    """


class UnterminatedConditionalError(PreprocessError):
    """
    Represents a conditional still open at the end of input.
    """


class IncludeNotFoundError(PreprocessError):
    """
    Represents an include file that cannot be found or read.
    """


class RecursiveIncludeError(PreprocessError):
    """
    Represents file inclusion nested beyond the maximum depth.
    """


class UserError(PreprocessError):
    """
    Represents an -error directive.
    """


class UpstreamLexError(PreprocessError):
    """
    Represents a tokenization error reported by the lexer.
    """
