# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes that define:
- Nodes representing preprocessor directives
- Parsers recognizing directives in a stream of tokens
- Macros and the expansion of macro calls
- The Preprocessor, which produces expanded tokens on demand
"""
from __future__ import annotations

import logging
import os
import re
import typing
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from erlpp.errors import (
    IncludeNotFoundError,
    MalformedArgumentsError,
    MisplacedElseError,
    PreprocessSyntaxError,
    RecursiveExpansionError,
    UndefinedMacroError,
    UnmatchedEndifError,
    UnterminatedConditionalError,
    UserError,
)
from erlpp.file_source import (
    ConsumedToken,
    IncludeFinder,
    InclusionStack,
    TokenReader,
    TokenSource,
    open_file_source,
)
from erlpp.lexer import (
    Atom,
    IntegerConstant,
    Lexer,
    Operator,
    Position,
    Punctuator,
    StringConstant,
    Token,
    TokenError,
    Variable,
)
from erlpp.macro_table import MacroTable

log = logging.getLogger(__name__)

DIRECTIVES = frozenset(
    [
        "define",
        "undef",
        "ifdef",
        "ifndef",
        "else",
        "endif",
        "include",
        "include_lib",
        "error",
        "warning",
        "file",
    ],
)

CONDITIONAL_DIRECTIVES = frozenset(["ifdef", "ifndef", "else", "endif"])

# Opening brackets and the closing brackets they expect.
BRACKETS = {"(": ")", "[": "]", "{": "}", "<<": ">>"}


def _representation_string(
    obj: Any,
    *,
    name: str | None = None,
    attrs: list[str] | None = None,
) -> str:
    """
    Helper function to build representation strings of the form:
    Name(attribute={attribute!r},...)
    """
    if not name:
        name = obj.__class__.__name__
    if not attrs:
        attrs = obj.__dict__
    properties = ",".join(f"{a}={getattr(obj, a)!r}" for a in attrs)
    return f"{name}({properties})"


def is_symbol(token: Token | None, text: str) -> bool:
    """
    Return True if `token` is the operator or punctuator `text`.
    """
    return isinstance(token, (Operator, Punctuator)) and token.text == text


def quote_string(value: str) -> str:
    """
    Return the text of a string literal with the given value.
    """
    escaped = (
        value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n")
    )
    return f'"{escaped}"'


def quote_atom(value: str) -> str:
    """
    Return the text of an atom with the given value, quoting it if needed.
    """
    if re.fullmatch(r"[a-z][A-Za-z0-9_@]*", value):
        return value
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def stringify(tokens: list[Token], marker: Token) -> StringConstant:
    """
    Return a StringConstant spelling `tokens`, separated by single spaces.
    The string is positioned at the first token, or at `marker` if there
    are no tokens.
    """
    text = quote_string(" ".join(t.text for t in tokens))
    position = tokens[0].position if tokens else marker.position
    return StringConstant(text, position, marker.prev_white)


def _integer_value(text: str) -> int:
    """
    Return the value of an Erlang integer literal, e.g. 42, 1_000 or 16#ff.
    """
    text = text.replace("_", "")
    if "#" in text:
        base, digits = text.split("#", 1)
        return int(digits, int(base))
    return int(text)


class ParseError(ValueError):
    """
    Represents an error encountered during parsing.
    """


@dataclass(eq=False)
class DirectiveNode:
    """
    Base class for all directives.
    Tracks all of the tokens of the directive, from '-' to the final '.'.
    """

    tokens: list[Token]

    @property
    def position(self) -> Position:
        return self.tokens[0].position

    @property
    def keyword(self) -> str:
        return self.tokens[1].text

    def evaluate(self, preprocessor: Preprocessor) -> None:
        """
        Apply the effect of this directive to the preprocessor state.
        Does nothing by default.
        """

    def spelling(self) -> list[str]:
        """
        Recover the original spelling of this directive in the input code.
        Useful primarily for debugging and generating error messages.

        Returns
        -------
        list[str]
            The string representation of this directive in the input code.
        """
        out = []
        for token in self.tokens:
            if token.prev_white and out:
                out.append(" ")
            out.append(str(token))
        return ["".join(out)]


@dataclass(eq=False)
class DefineNode(DirectiveNode):
    """
    A DirectiveNode representing a -define directive.
    """

    identifier: Token
    args: list[Variable] | None = None
    value: list[Token] = field(default_factory=list)

    def evaluate(self, preprocessor: Preprocessor) -> None:
        """
        Add a definition into the macro table.
        """
        macro = make_macro(self.identifier, self.args, self.value)
        preprocessor.macros.define(macro)


@dataclass(eq=False)
class UndefNode(DirectiveNode):
    """
    A DirectiveNode representing an -undef directive.
    """

    identifier: Token

    def evaluate(self, preprocessor: Preprocessor) -> None:
        preprocessor.macros.undef(_token_value(self.identifier), self.position)


@dataclass(eq=False)
class IfdefNode(DirectiveNode):
    """
    Represents an -ifdef directive.
    """

    identifier: Token

    def condition(self, macros: MacroTable) -> bool:
        return macros.is_defined(_token_value(self.identifier))

    def evaluate(self, preprocessor: Preprocessor) -> None:
        preprocessor.conditions.push(
            self.condition(preprocessor.macros),
            self.position,
        )


@dataclass(eq=False)
class IfndefNode(IfdefNode):
    """
    Represents an -ifndef directive.
    """

    def condition(self, macros: MacroTable) -> bool:
        return not super().condition(macros)


@dataclass(eq=False)
class ElseNode(DirectiveNode):
    """
    Represents an -else directive.
    """

    def evaluate(self, preprocessor: Preprocessor) -> None:
        preprocessor.conditions.else_(self.position)


@dataclass(eq=False)
class EndifNode(DirectiveNode):
    """
    Represents an -endif directive.
    """

    def evaluate(self, preprocessor: Preprocessor) -> None:
        preprocessor.conditions.endif(self.position)


@dataclass(eq=False)
class IncludeNode(DirectiveNode):
    """
    A DirectiveNode representing an -include directive.
    """

    path: StringConstant

    def find(
        self,
        finder: IncludeFinder,
        this_path: str | None,
    ) -> Path | None:
        return finder.find_include(self.path.value, this_path)

    def evaluate(self, preprocessor: Preprocessor) -> None:
        """
        Find the include file and make it the current source, so that its
        tokens are read before the rest of the including file.
        """
        source = preprocessor.inclusion.current
        this_path = None
        if source.filename is not None:
            this_path = os.path.dirname(source.filename)

        include_file = self.find(preprocessor.finder, this_path)
        if include_file is None:
            raise IncludeNotFoundError(
                f"Cannot find include file '{self.path.value}'.",
                self.position,
            )

        try:
            included = open_file_source(include_file, self.position)
        except OSError as e:
            raise IncludeNotFoundError(
                f"Cannot read include file '{include_file}': {e.strerror}",
                self.position,
            ) from e
        preprocessor.inclusion.push(included)


@dataclass(eq=False)
class IncludeLibNode(IncludeNode):
    """
    A DirectiveNode representing an -include_lib directive.
    """

    def find(
        self,
        finder: IncludeFinder,
        this_path: str | None,
    ) -> Path | None:
        return finder.find_include_lib(self.path.value, this_path)


@dataclass(eq=False)
class ErrorNode(DirectiveNode):
    """
    Represents an -error directive.
    """

    message: str

    def evaluate(self, preprocessor: Preprocessor) -> None:
        raise UserError(self.message, self.position)


@dataclass(eq=False)
class WarningNode(DirectiveNode):
    """
    Represents a -warning directive.
    """

    message: str

    def evaluate(self, preprocessor: Preprocessor) -> None:
        preprocessor.warn(self.message, self.position)


@dataclass(eq=False)
class FileNode(DirectiveNode):
    """
    Represents a -file directive, which changes the file name and line
    number reported by the FILE and LINE macros.
    """

    filename: StringConstant
    line: IntegerConstant

    def evaluate(self, preprocessor: Preprocessor) -> None:
        preprocessor.inclusion.current.set_file(
            self.filename.value,
            _integer_value(self.line.text),
            self.tokens[-1].position.line,
        )


def _token_value(token: Token) -> str:
    if isinstance(token, (Atom, Variable)):
        return token.value
    return token.text


_TYPE_NAMES = {
    Atom: "an atom",
    Variable: "a variable",
    StringConstant: "a string",
    IntegerConstant: "an integer",
}


def _describe(token_type: type | tuple[type, ...]) -> str:
    if isinstance(token_type, tuple):
        return " or ".join(_describe(t) for t in token_type)
    return _TYPE_NAMES.get(token_type, token_type.__name__)


class Parser:
    """
    A generic token parser for matching tokens from a list.
    """

    def __init__(self, tokens: list[Token]) -> None:
        self.tokens = tokens
        self.pos = 0

    def cursor(self) -> Token:
        """
        Return the current token in the list.
        """
        try:
            return self.tokens[self.pos]
        except IndexError:
            raise ParseError("No tokens left for cursor to traverse")

    def eol(self) -> bool:
        """
        Return True when the end of the list is reached.
        """
        return self.pos == len(self.tokens)

    def match_type(self, token_type: type | tuple[type, ...]) -> Token:
        """
        Match a token of the specified type and advance position.
        """
        if isinstance(self.cursor(), token_type):
            token = self.cursor()
            self.pos += 1
        else:
            raise ParseError(
                f"Expected {_describe(token_type)}, found '{self.cursor()}'.",
            )
        return token

    def match_value(self, token_type: type, token_value: str) -> Token:
        """
        Match a token of the specified type and value, and advance
        position.
        """
        if (
            isinstance(self.cursor(), token_type)
            and self.cursor().text == token_value
        ):
            token = self.cursor()
            self.pos += 1
        else:
            raise ParseError(
                f"Expected '{token_value}', found '{self.cursor()}'.",
            )
        return token


class DirectiveParser(Parser):
    """
    A specialized token parser for recognizing directives.
    The token list runs from the leading '-' up to and including the '.'
    that ends the directive.
    """

    @staticmethod
    def collect(reader: TokenReader, hyphen: Token) -> list[Token] | None:
        """
        Read the tokens of the directive introduced by `hyphen`.

        Returns
        -------
        list[Token] | None
            The tokens of the directive, or None if the next token does not
            name a directive. In that case nothing beyond `hyphen` is read.

        Raises
        ------
        PreprocessSyntaxError
            If the current file ends before the '.' ending the directive.
        """
        keyword = reader.peek()
        if not isinstance(keyword, Atom) or keyword.text not in DIRECTIVES:
            return None

        tokens = [hyphen]
        while True:
            token = reader.read(pop=False)
            if token is None:
                raise PreprocessSyntaxError(
                    f"Missing '.' at the end of the -{keyword.text} "
                    + "directive.",
                    tokens[-1].position,
                )
            tokens.append(token)
            if is_symbol(token, "."):
                return tokens

    @staticmethod
    def is_conditional(tokens: list[Token]) -> bool:
        return tokens[1].text in CONDITIONAL_DIRECTIVES

    def error_position(self) -> Position:
        return self.tokens[min(self.pos, len(self.tokens) - 1)].position

    def macro_name(self) -> Token:
        """
        Match the name of a macro, which may be an atom or a variable.
        """
        return self.match_type((Atom, Variable))

    def arg_list(self) -> list[Variable]:
        """
        Match a parenthesized, comma-separated list of parameters.

        <arg-list> := '('[<variable>[','<variable>]*]?')'
        """
        self.match_value(Punctuator, "(")
        args: list[Variable] = []
        if is_symbol(self.cursor(), ")"):
            self.pos += 1
            return args

        while True:
            arg = typing.cast(Variable, self.match_type(Variable))
            if arg.text in [a.text for a in args]:
                raise ParseError(f"Duplicate parameter '{arg.text}'.")
            args.append(arg)
            if is_symbol(self.cursor(), ","):
                self.pos += 1
                continue
            self.match_value(Punctuator, ")")
            return args

    def __end(self) -> None:
        """
        <end> := ')''.'
        """
        self.match_value(Punctuator, ")")
        self.match_value(Punctuator, ".")

    def define(self) -> DefineNode:
        """
        Match a -define directive.

        <define-macro>    := 'define''('<name>','<token-list>?')''.'
        <define-function> := 'define''('<name><arg-list>','<token-list>?')''.'
        """
        self.match_value(Atom, "define")
        self.match_value(Punctuator, "(")
        identifier = self.macro_name()

        args = None
        if is_symbol(self.cursor(), "("):
            args = self.arg_list()
        self.match_value(Punctuator, ",")

        # The body is everything up to the ')' before the final '.'
        close = len(self.tokens) - 2
        if close < self.pos or not is_symbol(self.tokens[close], ")"):
            self.pos = max(self.pos, close)
            raise ParseError("Expected ')' before the final '.'.")
        expansion = self.tokens[self.pos : close]
        self.pos = close
        self.__end()

        return DefineNode(self.tokens, identifier, args, expansion)

    def __name_directive(self, keyword: str) -> Token:
        """
        <name-directive> := <keyword>'('<name>')''.'
        """
        self.match_value(Atom, keyword)
        self.match_value(Punctuator, "(")
        identifier = self.macro_name()
        self.__end()
        return identifier

    def undef(self) -> UndefNode:
        return UndefNode(self.tokens, self.__name_directive("undef"))

    def ifdef(self) -> IfdefNode:
        return IfdefNode(self.tokens, self.__name_directive("ifdef"))

    def ifndef(self) -> IfndefNode:
        return IfndefNode(self.tokens, self.__name_directive("ifndef"))

    def else_(self) -> ElseNode:
        """
        <else> := 'else''.'
        """
        self.match_value(Atom, "else")
        self.match_value(Punctuator, ".")
        return ElseNode(self.tokens)

    def endif(self) -> EndifNode:
        """
        <endif> := 'endif''.'
        """
        self.match_value(Atom, "endif")
        self.match_value(Punctuator, ".")
        return EndifNode(self.tokens)

    def __path(self, keyword: str) -> StringConstant:
        """
        <include> := <keyword>'('<string>')''.'
        """
        self.match_value(Atom, keyword)
        self.match_value(Punctuator, "(")
        path = typing.cast(StringConstant, self.match_type(StringConstant))
        self.__end()
        return path

    def include(self) -> IncludeNode:
        return IncludeNode(self.tokens, self.__path("include"))

    def include_lib(self) -> IncludeLibNode:
        return IncludeLibNode(self.tokens, self.__path("include_lib"))

    def __message(self, keyword: str) -> str:
        """
        Match the term of an -error or -warning directive.
        A single string is reported by value; anything else is reported as
        it is spelled.

        <message> := <keyword>'('<token-list>')''.'
        """
        self.match_value(Atom, keyword)
        self.match_value(Punctuator, "(")
        close = len(self.tokens) - 2
        if close <= self.pos or not is_symbol(self.tokens[close], ")"):
            self.pos = max(self.pos, close)
            raise ParseError("Expected a term.")
        term = self.tokens[self.pos : close]
        self.pos = close
        self.__end()

        if len(term) == 1 and isinstance(term[0], StringConstant):
            return term[0].value
        return " ".join(t.text for t in term)

    def error(self) -> ErrorNode:
        return ErrorNode(self.tokens, self.__message("error"))

    def warning(self) -> WarningNode:
        return WarningNode(self.tokens, self.__message("warning"))

    def file(self) -> FileNode:
        """
        <file> := 'file''('<string>','<integer>')''.'
        """
        self.match_value(Atom, "file")
        self.match_value(Punctuator, "(")
        filename = typing.cast(StringConstant, self.match_type(StringConstant))
        self.match_value(Punctuator, ",")
        line = typing.cast(IntegerConstant, self.match_type(IntegerConstant))
        try:
            _integer_value(line.text)
        except ValueError:
            self.pos -= 1
            raise ParseError(f"Invalid line number '{line.text}'.")
        self.__end()
        return FileNode(self.tokens, filename, line)

    def parse(self) -> DirectiveNode:
        """
        Parse a preprocessor directive.
        Return a DirectiveNode.

        <directive> := '-'[<define>|<undef>|<ifdef>|<ifndef>|<else>|
                           <endif>|<include>|<include_lib>|<error>|
                           <warning>|<file>]

        Raises
        ------
        PreprocessSyntaxError
            If the directive is malformed.
        """
        self.match_value(Operator, "-")
        keyword = self.cursor().text

        candidates = {
            "define": self.define,
            "undef": self.undef,
            "ifdef": self.ifdef,
            "ifndef": self.ifndef,
            "else": self.else_,
            "endif": self.endif,
            "include": self.include,
            "include_lib": self.include_lib,
            "error": self.error,
            "warning": self.warning,
            "file": self.file,
        }
        try:
            return candidates[keyword]()
        except ParseError as e:
            raise PreprocessSyntaxError(
                f"Invalid -{keyword} directive. {e}",
                self.error_position(),
            ) from e


def macro_from_definition_string(string: str) -> Macro | MacroFunction:
    """
    Construct a Macro or MacroFunction by parsing a string of the form
    MACRO=expansion. A string without '=' defines MACRO as `true`.

    Raises
    ------
    PreprocessSyntaxError
        If the string does not start with a macro name.
    """
    try:
        parser = DirectiveParser(Lexer(string).tokenize())
        identifier = parser.macro_name()
        args = None
        if not parser.eol() and is_symbol(parser.cursor(), "("):
            args = parser.arg_list()

        # Any remaining tokens after an "=" are the macro expansion
        if not parser.eol():
            parser.match_value(Operator, "=")
            expansion = parser.tokens[parser.pos :]
            parser.pos = len(parser.tokens)
        else:
            expansion = [Atom("true", identifier.position)]
    except (ParseError, TokenError) as e:
        raise PreprocessSyntaxError(
            f"Invalid macro definition '{string}'. {e}",
        ) from e

    return make_macro(identifier, args, expansion)


def make_macro(
    identifier: Token,
    args: list[Variable] | None,
    expansion: list[Token],
) -> Macro | MacroFunction:
    """
    Return a Macro or MacroFunction based on the contents of args.
    """
    if args is None:
        return Macro(identifier, expansion)
    else:
        return MacroFunction(identifier, args, expansion)


class Macro:
    """
    Represents a macro definition without arguments.
    """

    def __init__(self, name: Token, replacement: list[Token]) -> None:
        self.name = _token_value(name)
        self.replacement = list(replacement)
        self.position = name.position

    @property
    def arity(self) -> int | None:
        return None

    def which_arg(self, tok: str) -> int:
        """
        Returns index token occupies in this Macro's list. -1 if not found.
        """
        return -1

    def __repr__(self) -> str:
        return _representation_string(
            self,
            attrs=["name", "replacement"],
        )

    def replace(
        self,
        input_args: list[list[Token]] | None = None,
    ) -> list[Token]:
        """
        Return the expansion list for this Macro.
        """
        if input_args is not None:
            raise RuntimeError("Macro expected no arguments.")
        return list(self.replacement)


class MacroFunction(Macro):
    """
    Represents a macro function definition.
    """

    def __init__(
        self,
        name: Token,
        args: list[Variable],
        replacement: list[Token],
    ) -> None:
        self.args = [x.text for x in args]
        super().__init__(name, replacement)

    @property
    def arity(self) -> int:
        return len(self.args)

    def which_arg(self, tok: str) -> int:
        """
        Returns index token occupies in this Macro's list. -1 if not found.
        """
        try:
            return self.args.index(tok)
        except ValueError:
            return -1

    def __repr__(self) -> str:
        return _representation_string(
            self,
            attrs=["name", "args", "replacement"],
        )

    def replace(
        self,
        input_args: list[list[Token]] | None = None,
    ) -> list[Token]:
        """
        Return the substituted replacement for this macro.

        Each parameter in the body is replaced by the tokens of the
        corresponding argument, keeping their call-site positions. `??Param`
        is replaced by a string spelling the argument.
        """
        if input_args is None or len(input_args) != len(self.args):
            raise RuntimeError(
                f"Macro expected {len(self.args)} arguments.",
            )

        substituted_tokens: list[Token] = []
        idx = 0
        while idx < len(self.replacement):
            tok = self.replacement[idx]
            nexttok = None
            if idx + 1 < len(self.replacement):
                nexttok = self.replacement[idx + 1]

            if (
                is_symbol(tok, "??")
                and isinstance(nexttok, Variable)
                and self.which_arg(nexttok.text) != -1
            ):
                argidx = self.which_arg(nexttok.text)
                substituted_tokens.append(stringify(input_args[argidx], tok))
                idx += 2
                continue

            argidx = -1
            if isinstance(tok, Variable):
                argidx = self.which_arg(tok.text)
            if argidx != -1:
                substituted_tokens.extend(input_args[argidx])
            else:
                substituted_tokens.append(tok)
            idx += 1

        return substituted_tokens


@dataclass
class ConditionalFrame:
    """
    Represents an open -ifdef or -ifndef.
    """

    condition: bool
    parent_active: bool
    position: Position | None
    else_seen: bool = False

    @property
    def active(self) -> bool:
        return self.parent_active and self.condition


class ConditionalStack:
    """
    Tracks nested conditionals, and whether tokens are currently emitted.
    """

    def __init__(self) -> None:
        self.frames: list[ConditionalFrame] = []

    def __len__(self) -> int:
        return len(self.frames)

    @property
    def active(self) -> bool:
        return not self.frames or self.frames[-1].active

    def push(self, condition: bool, position: Position | None = None) -> None:
        self.frames.append(ConditionalFrame(condition, self.active, position))

    def else_(self, position: Position | None = None) -> None:
        """
        Raises
        ------
        MisplacedElseError
            If no conditional is open, or it has already seen an -else.
        """
        if not self.frames:
            raise MisplacedElseError(
                "-else without -ifdef or -ifndef.",
                position,
            )
        frame = self.frames[-1]
        if frame.else_seen:
            raise MisplacedElseError(
                "Second -else for the conditional opened at "
                + f"{frame.position}.",
                position,
            )
        frame.else_seen = True
        frame.condition = not frame.condition

    def endif(self, position: Position | None = None) -> None:
        """
        Raises
        ------
        UnmatchedEndifError
            If no conditional is open.
        """
        if not self.frames:
            raise UnmatchedEndifError(
                "-endif without -ifdef or -ifndef.",
                position,
            )
        self.frames.pop()

    def finish(self) -> None:
        """
        Raises
        ------
        UnterminatedConditionalError
            If a conditional is still open.
        """
        if self.frames:
            frame = self.frames[-1]
            raise UnterminatedConditionalError(
                "Conditional is not terminated by -endif.",
                frame.position,
            )


@dataclass
class MacroCall:
    """
    Represents a macro call found in the input.
    `args` is None for a call without arguments.
    """

    question: Token
    name: Token
    args: list[list[Token]] | None = None

    @property
    def position(self) -> Position:
        return self.question.position

    def spelling(self) -> list[str]:
        out = f"?{self.name}"
        if self.args is not None:
            args = ", ".join(" ".join(t.text for t in a) for a in self.args)
            out += f"({args})"
        return [out]


@dataclass(frozen=True)
class Diagnostic:
    """
    Represents a warning reported while preprocessing.
    """

    position: Position | None
    message: str

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.position}: {self.message}"


class MacroExpander:
    """
    A specialized token reader for recognizing and expanding macros.
    Expansions are pushed onto the token reader, so that their tokens are
    themselves scanned for further macro calls.
    """

    def __init__(self, preprocessor: Preprocessor) -> None:
        self.preprocessor = preprocessor
        self.reader = preprocessor.reader

        # Prevent infinite recursion through self-referential macros.
        self.max_level = preprocessor.max_depth

    def push(
        self,
        tokens: list[Token],
        name: str,
        depth: int,
        call_site: Position,
        position: Position,
    ) -> None:
        """
        Push the expansion of a macro.

        Raises
        ------
        RecursiveExpansionError
            If the expansion is nested deeper than the maximum.
        """
        if depth > self.max_level:
            raise RecursiveExpansionError(
                f"Expansion of macro '{name}' is nested more than "
                + f"{self.max_level} levels deep (expanding the call at "
                + f"{call_site}).",
                position,
            )
        self.reader.push(tokens, name, depth, call_site)

    def read_arguments(
        self,
        question: Token,
    ) -> tuple[list[list[Token]], list[ConsumedToken]]:
        """
        Read a parenthesized argument list, splitting at commas outside of
        nested brackets.

        Returns
        -------
        tuple[list[list[Token]], list[ConsumedToken]]
            The arguments, and every token consumed (including brackets)
            with the expansion depth and call site it was read at.

        Raises
        ------
        MalformedArgumentsError
            If brackets are unbalanced, an argument is empty, or the input
            ends before the argument list is closed.
        """
        consumed = [
            (
                typing.cast(Token, self.reader.read()),
                self.reader.depth,
                self.reader.call_site,
            ),
        ]
        args: list[list[Token]] = []
        current: list[Token] = []
        expected = [")"]

        while True:
            tok = self.reader.read()
            if tok is None:
                raise MalformedArgumentsError(
                    "Input ends inside the arguments of a macro call.",
                    question.position,
                )
            consumed.append((tok, self.reader.depth, self.reader.call_site))

            if is_symbol(tok, ",") and len(expected) == 1:
                if not current:
                    raise MalformedArgumentsError(
                        "Expected a macro argument before ','.",
                        tok.position,
                    )
                args.append(current)
                current = []
                continue

            bracket = isinstance(tok, (Operator, Punctuator))
            if bracket and tok.text in BRACKETS:
                expected.append(BRACKETS[tok.text])
            elif bracket and tok.text in BRACKETS.values():
                closer = expected.pop()
                if tok.text != closer:
                    raise MalformedArgumentsError(
                        f"Unbalanced brackets: expected '{closer}', found "
                        + f"'{tok.text}'.",
                        tok.position,
                    )
                if not expected:
                    if current:
                        args.append(current)
                    elif args:
                        raise MalformedArgumentsError(
                            "Expected a macro argument before ')'.",
                            tok.position,
                        )
                    return args, consumed
            current.append(tok)

    def predefined(
        self,
        name: str,
        question: Token,
        call_site: Position,
    ) -> Token:
        """
        Return the single token that a predefined macro expands to.
        Values describe the outermost call site.

        Raises
        ------
        UndefinedMacroError
            If FILE or MODULE has no value yet.
        """
        source = self.preprocessor.inclusion.current
        prev_white = question.prev_white

        if name == "LINE":
            line = source.logical_line(call_site.line)
            return IntegerConstant(str(line), call_site, prev_white)

        if name == "FILE":
            filename = source.logical_filename
            if filename is None:
                raise UndefinedMacroError(
                    "Macro 'FILE' is undefined: the input has no file name.",
                    question.position,
                )
            text = quote_string(filename)
            return StringConstant(text, call_site, prev_white)

        if name == "MACHINE":
            return Atom("'BEAM'", call_site, prev_white)

        module = self.preprocessor.module_name
        if module is None:
            raise UndefinedMacroError(
                f"Macro '{name}' is undefined: no -module attribute "
                + "has been seen.",
                question.position,
            )
        if name == "MODULE_STRING":
            return StringConstant(quote_string(module), call_site, prev_white)
        return Atom(quote_atom(module), call_site, prev_white)

    def expand(self, question: Token) -> MacroCall:
        """
        Expand the macro call introduced by `question`, which has just been
        read. The expansion is pushed onto the token reader.

        Returns
        -------
        MacroCall
            The macro call that was expanded.

        Raises
        ------
        PreprocessSyntaxError
            If '?' is not followed by a macro name.

        UndefinedMacroError
            If the macro is not defined for the number of arguments given.
        """
        depth = self.reader.depth + 1
        call_site = self.reader.call_site or question.position

        name_token = self.reader.read()
        if not isinstance(name_token, (Atom, Variable)):
            position = question.position
            if name_token is not None:
                position = name_token.position
            raise PreprocessSyntaxError(
                "Expected a macro name after '?'.",
                position,
            )
        name = name_token.value
        macros = self.preprocessor.macros

        if macros.is_predefined(name):
            token = self.predefined(name, question, call_site)
            self.push([token], name, depth, call_site, question.position)
            return MacroCall(question, name_token)

        args = None
        consumed: list[ConsumedToken] = []
        arities = macros.arities(name)
        if not arities:
            raise UndefinedMacroError(
                f"Undefined macro '{name}'.",
                question.position,
            )
        if is_symbol(self.reader.peek(), "(") and arities != {None}:
            args, consumed = self.read_arguments(question)

        # ?F(X) falls back to F without arguments if no variant takes them.
        if args is not None and macros.get(name, len(args)) is None:
            if None in arities:
                self.reader.unread(consumed)
                args = None

        arity = None if args is None else len(args)
        macro = macros.lookup(name, arity, question.position)
        if log.isEnabledFor(logging.DEBUG):
            log.debug(f"Expanding {macro!r} at {question.position}")
        expansion = macro.replace(args)
        self.push(expansion, name, depth, call_site, question.position)
        return MacroCall(question, name_token, args)


class Preprocessor:
    """
    Represents a single preprocessing run over a stream of tokens,
    including:
    - Active macro definitions
    - Open conditionals and include files
    - Directives, macro calls and warnings seen so far

    Iterating over a Preprocessor produces the expanded tokens on demand.
    After an error is raised, iteration stops for good.
    """

    def __init__(
        self,
        tokens: Iterable[Token],
        *,
        filename: str | os.PathLike[str] | None = None,
        include_paths: list[str | os.PathLike[str]] | None = None,
        code_paths: list[str | os.PathLike[str]] | None = None,
        defines: list[str] | None = None,
        module_name: str | None = None,
        max_depth: int = 200,
        finder: IncludeFinder | None = None,
    ) -> None:
        if filename is not None and not isinstance(
            filename,
            (str, os.PathLike),
        ):
            raise TypeError("'filename' must be PathLike.")

        for arg, paths in [
            ("include_paths", include_paths),
            ("code_paths", code_paths),
        ]:
            if paths is None:
                continue
            if isinstance(paths, (str, os.PathLike)) or not all(
                [isinstance(p, (str, os.PathLike)) for p in paths],
            ):
                raise TypeError(f"Each path in '{arg}' must be PathLike.")

        if defines is not None and (
            isinstance(defines, str)
            or not all([isinstance(d, str) for d in defines])
        ):
            raise TypeError("Each definition in 'defines' must be a string.")

        if module_name is not None and not isinstance(module_name, str):
            raise TypeError("'module_name' must be a string.")

        if not isinstance(max_depth, int) or max_depth < 1:
            raise TypeError("'max_depth' must be a positive integer.")

        self.filename = str(filename) if filename is not None else None
        self.max_depth = max_depth
        self.finder = finder or IncludeFinder(include_paths, code_paths)

        self.macros = MacroTable()
        self.conditions = ConditionalStack()
        self.inclusion = InclusionStack(
            TokenSource(tokens, self.filename),
            max_depth,
        )
        self.reader = TokenReader(self.inclusion)
        self.expander = MacroExpander(self)

        self.module_name = module_name
        self._module_fixed = module_name is not None

        self.directives: list[DirectiveNode] = []
        self.macro_calls: list[MacroCall] = []
        self.warnings: list[Diagnostic] = []

        self._form_start = True
        self._attribute: list[Token] | None = None
        self._done = False

        for definition in defines or []:
            self.macros.define(macro_from_definition_string(definition))

    @classmethod
    def from_file(
        cls,
        path: str | os.PathLike[str],
        **kwargs: Any,
    ) -> Preprocessor:
        """
        Return a Preprocessor reading the tokens of the file at `path`.

        Raises
        ------
        OSError
            If the file cannot be read.
        """
        with open(path, encoding="utf-8") as fp:
            text = fp.read()
        return cls(Lexer(text, str(path)), filename=str(path), **kwargs)

    def __repr__(self) -> str:
        return _representation_string(
            self,
            attrs=["filename", "module_name", "max_depth"],
        )

    def __iter__(self) -> Iterator[Token]:
        return self

    def __next__(self) -> Token:
        if self._done:
            raise StopIteration
        try:
            token = self._next_token()
        except BaseException:
            self.close()
            raise
        if token is None:
            self.close()
            raise StopIteration
        return token

    def __enter__(self) -> Preprocessor:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        """
        Stop producing tokens and release any pending input.
        """
        self._done = True
        self.reader.clear()

    def warn(self, message: str, position: Position | None = None) -> None:
        """
        Record a warning, and report it via the logger.
        """
        diagnostic = Diagnostic(position, message)
        self.warnings.append(diagnostic)
        log.warning(str(diagnostic))

    def _next_token(self) -> Token | None:
        while True:
            token = self.reader.read()
            if token is None:
                self.conditions.finish()
                return None

            at_form_start = self._form_start
            if (
                at_form_start
                and self.reader.from_source()
                and is_symbol(token, "-")
            ):
                tokens = DirectiveParser.collect(self.reader, token)
                if tokens is not None:
                    self._directive(tokens)
                    continue

            self._form_start = is_symbol(token, ".")
            if not self.conditions.active:
                continue

            if is_symbol(token, "?"):
                from_source = self.reader.from_source()
                call = self.expander.expand(token)
                if from_source:
                    self.macro_calls.append(call)
                continue

            self._track_module(token, at_form_start)
            return token

    def _directive(self, tokens: list[Token]) -> None:
        """
        Parse and evaluate a directive. While tokens are suppressed only
        conditionals are evaluated, so that nesting is still tracked.
        """
        self._form_start = True
        if not (
            self.conditions.active or DirectiveParser.is_conditional(tokens)
        ):
            log.debug(f"Skipping -{tokens[1].text} at {tokens[0].position}")
            return

        directive = DirectiveParser(tokens).parse()
        self.directives.append(directive)
        directive.evaluate(self)

    def _track_module(self, token: Token, at_form_start: bool) -> None:
        """
        Watch for the -module(Name) attribute, which gives MODULE its value.
        """
        if self._module_fixed:
            return
        if self._attribute is not None:
            self._attribute.append(token)
            if len(self._attribute) == 3:
                keyword, paren, name = self._attribute
                if (
                    isinstance(keyword, Atom)
                    and keyword.text == "module"
                    and is_symbol(paren, "(")
                    and isinstance(name, Atom)
                ):
                    self.module_name = name.value
                    log.debug(f"Module name is '{self.module_name}'")
                self._attribute = None
        elif at_form_start and is_symbol(token, "-"):
            self._attribute = []


def preprocess_string(
    string: str,
    filename: str | None = None,
    **kwargs: Any,
) -> list[Token]:
    """
    Return the tokens produced by preprocessing `string`.
    Keyword arguments are passed to the Preprocessor.
    """
    tokens = Lexer(string, filename)
    return list(Preprocessor(tokens, filename=filename, **kwargs))
