# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains classes that define:
- Positions of tokens within a source file
- Tokens from lexing Erlang source code
- A lexer producing positioned tokens on demand
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Position:
    """
    Represents the location of a token in its source file.

    `offset` is a 0-based byte offset into the UTF-8 encoded source, while
    `line` and `column` are 1-based.
    """

    filename: str | None
    offset: int
    line: int
    column: int

    def __str__(self) -> str:
        filename = self.filename if self.filename is not None else "<input>"
        return f"{filename}:{self.line}:{self.column}"


class TokenError(ValueError):
    """
    Represents an error encountered during tokenization.
    """

    def __init__(self, message: str, position: Position | None = None):
        super().__init__(message)
        self.message = message
        self.position = position

    def __str__(self) -> str:
        if self.position is None:
            return self.message
        return f"{self.position}: {self.message}"


@dataclass(frozen=True)
class Token:
    """
    Represents a token constructed by the lexer.
    """

    # The exact lexeme as it appears in the source.
    text: str
    position: Position = field(compare=False)
    prev_white: bool = field(default=False, compare=False)

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class Atom(Token):
    """
    Represents an atom, either bare (`foo`) or quoted (`'foo bar'`).
    """

    @property
    def value(self) -> str:
        if self.text.startswith("'"):
            return unescape(self.text[1:-1])
        return self.text


@dataclass(frozen=True)
class Variable(Token):
    """
    Represents a variable.
    """

    @property
    def value(self) -> str:
        return self.text


@dataclass(frozen=True)
class StringConstant(Token):
    """
    Represents a double-quoted string literal.
    """

    @property
    def value(self) -> str:
        return unescape(self.text[1:-1])


@dataclass(frozen=True)
class CharacterConstant(Token):
    """
    Represents a character literal (`$a`).
    """


@dataclass(frozen=True)
class IntegerConstant(Token):
    """
    Represents an integer literal, including based integers (`16#ff`).
    """


@dataclass(frozen=True)
class FloatConstant(Token):
    """
    Represents a floating point literal.
    """


@dataclass(frozen=True)
class Operator(Token):
    """
    Represents an operator, including the macro markers `?` and `??`.
    """


@dataclass(frozen=True)
class Punctuator(Token):
    """
    Represents a punctuator (e.g. parentheses, comma, end-of-form dot)
    """


_HEX_DIGITS = "0123456789abcdefABCDEF"
_OCTAL_DIGITS = "01234567"

_ESCAPES = {
    "b": "\b",
    "d": "\x7f",
    "e": "\x1b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "s": " ",
    "t": "\t",
    "v": "\v",
}


def unescape(string: str) -> str:
    """
    Return `string` with Erlang escape sequences replaced.
    """
    out = []
    c = 0
    while c < len(string):
        if string[c] != "\\" or c + 1 == len(string):
            out.append(string[c])
            c += 1
            continue
        escaped = string[c + 1]
        if escaped in _ESCAPES:
            out.append(_ESCAPES[escaped])
            c += 2
        elif escaped == "x" and string[c + 2 : c + 3] == "{":
            end = string.index("}", c)
            out.append(chr(int(string[c + 3 : end], 16)))
            c = end + 1
        elif escaped == "x":
            out.append(chr(int(string[c + 2 : c + 4], 16)))
            c += 4
        elif escaped in _OCTAL_DIGITS:
            digits = escaped
            while (
                len(digits) < 3
                and c + 1 + len(digits) < len(string)
                and string[c + 1 + len(digits)] in _OCTAL_DIGITS
            ):
                digits += string[c + 1 + len(digits)]
            out.append(chr(int(digits, 8)))
            c += 1 + len(digits)
        elif escaped == "^" and c + 2 < len(string):
            out.append(chr(ord(string[c + 2]) % 32))
            c += 3
        else:
            out.append(escaped)
            c += 2
    return "".join(out)


class Lexer:
    """
    A lexer for Erlang source code.

    Iterating over a Lexer produces tokens lazily, so a consumer that stops
    pulling never pays for the rest of the input.
    """

    operators = [
        "=:=",
        "=/=",
        "...",
        "<<",
        ">>",
        "->",
        "<-",
        "<=",
        "=<",
        ">=",
        "==",
        "/=",
        "=>",
        ":=",
        "||",
        "++",
        "--",
        "::",
        "..",
        "??",
        "!",
        "+",
        "-",
        "*",
        "/",
        "=",
        "<",
        ">",
        "#",
        ":",
        "?",
    ]
    punctuators = ["(", ")", "[", "]", "{", "}", ",", ".", ";", "|"]

    def __init__(self, string: str, filename: str | None = None) -> None:
        self.string = string
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.col = 1
        self.offset = 0
        self.prev_white = False

    def read(self, n: int = 1) -> str:
        """
        Return the next n characters in the string.
        """
        return self.string[self.pos : self.pos + n]

    def eos(self) -> bool:
        """
        Return True when the end of the string is reached.
        """
        return self.pos >= len(self.string)

    def position(self) -> Position:
        return Position(self.filename, self.offset, self.line, self.col)

    def advance(self, n: int = 1) -> str:
        """
        Consume n characters, keeping line, column and byte offset in step.
        """
        consumed = self.read(n)
        for char in consumed:
            self.offset += len(char.encode("utf-8"))
            if char == "\n":
                self.line += 1
                self.col = 1
            else:
                self.col += 1
        self.pos += len(consumed)
        return consumed

    def whitespace(self) -> None:
        """
        Consume whitespace and comments, and advance position.
        """
        while not self.eos():
            if self.read().isspace():
                self.advance()
            elif self.read() == "%":
                while not self.eos() and self.read() != "\n":
                    self.advance()
            else:
                break
            self.prev_white = True

    def _escape(self, start: Position) -> str:
        """
        Consume an escape sequence following a backslash.
        """
        escape = self.position()
        chars = [self.advance()]
        if self.eos():
            raise TokenError("Unterminated escape sequence.", start)

        if self.read() == "x":
            chars.append(self.advance())
            if self.read() == "{":
                chars.append(self.advance())
                digits = []
                while not self.eos() and self.read() != "}":
                    digits.append(self.advance())
                if self.eos():
                    raise TokenError("Unterminated escape sequence.", start)
                chars.extend(digits)
                chars.append(self.advance())
                digits_str = "".join(digits)
                if not digits_str or not all(
                    [d in _HEX_DIGITS for d in digits_str],
                ):
                    raise TokenError(
                        f"Invalid hexadecimal escape '\\x{{{digits_str}}}'.",
                        escape,
                    )
                if int(digits_str, 16) > 0x10FFFF:
                    raise TokenError(
                        f"Character code '\\x{{{digits_str}}}' is out of "
                        + "range.",
                        escape,
                    )
            else:
                digits_str = self.read(2)
                if len(digits_str) < 2 or not all(
                    [d in _HEX_DIGITS for d in digits_str],
                ):
                    raise TokenError(
                        "Expected two hexadecimal digits after '\\x'.",
                        escape,
                    )
                chars.append(self.advance(2))
        elif self.read() in _OCTAL_DIGITS:
            while (
                len(chars) < 4
                and not self.eos()
                and self.read() in _OCTAL_DIGITS
            ):
                chars.append(self.advance())
        elif self.read() == "^":
            chars.append(self.advance())
            if self.eos():
                raise TokenError("Unterminated escape sequence.", start)
            chars.append(self.advance())
        else:
            chars.append(self.advance())
        return "".join(chars)

    def _quoted(self, quote: str, kind: str) -> str:
        start = self.position()
        chars = [self.advance()]
        while not self.eos() and self.read() != quote:
            if self.read() == "\\":
                chars.append(self._escape(start))
            else:
                chars.append(self.advance())
        if self.eos():
            raise TokenError(f"Unterminated {kind}.", start)
        chars.append(self.advance())
        return "".join(chars)

    def number(self) -> IntegerConstant | FloatConstant:
        """
        Construct an IntegerConstant or FloatConstant.

        <digits>  := <digit>['_'?<digit>]*
        <integer> := <digits>['#'<alnum>+]?
        <float>   := <digits>'.'<digits>[['e'|'E']['+'|'-']?<digits>]?
        """
        position = self.position()
        chars = [self._digits()]

        if self.read() == "#" and self.read(2)[1:].isalnum():
            chars.append(self.advance())
            while not self.eos() and (
                self.read().isalnum() or self.read() == "_"
            ):
                chars.append(self.advance())
            return IntegerConstant("".join(chars), position, self.prev_white)

        if self.read() == "." and self.read(2)[1:].isdigit():
            chars.append(self.advance())
            chars.append(self._digits())
            exponent = self.read(3)
            if exponent[:1] in ["e", "E"] and (
                exponent[1:2].isdigit()
                or (exponent[1:2] in ["+", "-"] and exponent[2:3].isdigit())
            ):
                chars.append(self.advance())
                if self.read() in ["+", "-"]:
                    chars.append(self.advance())
                chars.append(self._digits())
            return FloatConstant("".join(chars), position, self.prev_white)

        return IntegerConstant("".join(chars), position, self.prev_white)

    def _digits(self) -> str:
        chars = []
        while not self.eos() and (
            self.read().isdigit()
            or (self.read() == "_" and self.read(2)[1:].isdigit() and chars)
        ):
            chars.append(self.advance())
        return "".join(chars)

    def character_constant(self) -> CharacterConstant:
        """
        Construct a CharacterConstant.

        <character-constant> := '$'['\\'<escape>|<char>]
        """
        position = self.position()
        chars = [self.advance()]
        if self.eos():
            raise TokenError("Expected character after '$'.", position)
        if self.read() == "\\":
            chars.append(self._escape(position))
        else:
            chars.append(self.advance())
        return CharacterConstant("".join(chars), position, self.prev_white)

    def string_constant(self) -> StringConstant:
        """
        Construct a StringConstant.

        <string-constant> := '"'.*'"'
        """
        position = self.position()
        text = self._quoted('"', "string")
        return StringConstant(text, position, self.prev_white)

    def atom(self) -> Atom:
        """
        Construct an Atom.

        <atom> := [<lower>[<alnum>|'_'|'@']*|'''.*''']
        """
        position = self.position()
        if self.read() == "'":
            text = self._quoted("'", "quoted atom")
            return Atom(text, position, self.prev_white)
        return Atom(self._name(), position, self.prev_white)

    def variable(self) -> Variable:
        """
        Construct a Variable.

        <variable> := [<upper>|'_'][<alnum>|'_'|'@']*
        """
        position = self.position()
        return Variable(self._name(), position, self.prev_white)

    def _name(self) -> str:
        chars = []
        while not self.eos() and (
            self.read().isalnum() or self.read() in "_@"
        ):
            chars.append(self.advance())
        return "".join(chars)

    def symbol(self) -> Operator | Punctuator | None:
        """
        Construct an Operator or Punctuator, preferring the longest match.
        """
        position = self.position()
        for operator in self.operators:
            if self.read(len(operator)) == operator:
                self.advance(len(operator))
                return Operator(operator, position, self.prev_white)
        if self.read() in self.punctuators:
            return Punctuator(self.advance(), position, self.prev_white)
        return None

    def tokenize_one(self) -> Token | None:
        """
        Consume and return next token. Returns None if not possible.
        """
        char = self.read()
        token: Token | None
        if char.isdigit():
            token = self.number()
        elif char == "$":
            token = self.character_constant()
        elif char == '"':
            token = self.string_constant()
        elif char == "'" or char.islower():
            token = self.atom()
        elif char == "_" or char.isupper():
            token = self.variable()
        else:
            token = self.symbol()
        if token is not None:
            self.prev_white = False
        return token

    def __iter__(self) -> Iterator[Token]:
        self.whitespace()
        while not self.eos():
            token = self.tokenize_one()
            if token is None:
                raise TokenError(
                    f"Illegal character {self.read()!r}.",
                    self.position(),
                )
            yield token
            self.whitespace()

    def tokenize(self) -> list[Token]:
        """
        Return a list of all tokens in the string.
        """
        return list(self)
