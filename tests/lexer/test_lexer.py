# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import unittest

from erlpp.lexer import (
    Atom,
    CharacterConstant,
    FloatConstant,
    IntegerConstant,
    Lexer,
    Operator,
    Position,
    Punctuator,
    StringConstant,
    TokenError,
    Variable,
)


class TestLexer(unittest.TestCase):
    """
    Test ability to tokenize Erlang source code.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_form(self):
        """Check a simple function clause"""
        tokens = Lexer("foo(X, 'a b') -> \"s\\n\".").tokenize()
        self.assertEqual(
            [t.text for t in tokens],
            ["foo", "(", "X", ",", "'a b'", ")", "->", '"s\\n"', "."],
        )
        self.assertIsInstance(tokens[0], Atom)
        self.assertIsInstance(tokens[1], Punctuator)
        self.assertIsInstance(tokens[2], Variable)
        self.assertIsInstance(tokens[4], Atom)
        self.assertIsInstance(tokens[6], Operator)
        self.assertIsInstance(tokens[7], StringConstant)
        self.assertIsInstance(tokens[8], Punctuator)

    def test_positions(self):
        """Check line, column and byte offset"""
        tokens = Lexer("a\n  b", "f.erl").tokenize()
        self.assertEqual(tokens[0].position, Position("f.erl", 0, 1, 1))
        self.assertEqual(tokens[1].position, Position("f.erl", 4, 2, 3))

    def test_utf8_offset(self):
        """Check offsets count UTF-8 bytes, while columns count characters"""
        tokens = Lexer('"é" x').tokenize()
        self.assertEqual(tokens[1].position.offset, 5)
        self.assertEqual(tokens[1].position.column, 5)

    def test_comments(self):
        """Check comments are skipped and count as whitespace"""
        tokens = Lexer("a % comment\nb").tokenize()
        self.assertEqual([t.text for t in tokens], ["a", "b"])
        self.assertFalse(tokens[0].prev_white)
        self.assertTrue(tokens[1].prev_white)

    def test_numbers(self):
        """Check integers, based integers and floats"""
        tokens = Lexer("16#ff 1_000 3.14 2.0e-3 1.").tokenize()
        self.assertEqual(
            [t.text for t in tokens],
            ["16#ff", "1_000", "3.14", "2.0e-3", "1", "."],
        )
        self.assertIsInstance(tokens[0], IntegerConstant)
        self.assertIsInstance(tokens[1], IntegerConstant)
        self.assertIsInstance(tokens[2], FloatConstant)
        self.assertIsInstance(tokens[3], FloatConstant)
        self.assertIsInstance(tokens[4], IntegerConstant)
        self.assertIsInstance(tokens[5], Punctuator)

    def test_characters(self):
        """Check character constants, including escapes"""
        tokens = Lexer("$a $\\n $ ").tokenize()
        self.assertEqual([t.text for t in tokens], ["$a", "$\\n", "$ "])
        for token in tokens:
            self.assertIsInstance(token, CharacterConstant)

    def test_operators(self):
        """Check multi-character operators are preferred"""
        tokens = Lexer("?? ? -> =:= << >> || - --").tokenize()
        self.assertEqual(
            [t.text for t in tokens],
            ["??", "?", "->", "=:=", "<<", ">>", "||", "-", "--"],
        )
        for token in tokens:
            self.assertIsInstance(token, Operator)

    def test_macro_call(self):
        """Check macro markers are separate tokens"""
        tokens = Lexer("?FOO(??X)").tokenize()
        self.assertEqual(
            [t.text for t in tokens],
            ["?", "FOO", "(", "??", "X", ")"],
        )

    def test_values(self):
        """Check quoted atoms and strings are unescaped"""
        tokens = Lexer("'hello world' \"a\\tb\\x{41}\\101\" plain").tokenize()
        self.assertEqual(tokens[0].value, "hello world")
        self.assertEqual(tokens[1].value, "a\tbAA")
        self.assertEqual(tokens[2].value, "plain")

    def test_unterminated_string(self):
        """Check unterminated strings raise TokenError with a position"""
        with self.assertRaises(TokenError) as context:
            Lexer('ok "unterminated').tokenize()
        self.assertEqual(context.exception.position.column, 4)

    def test_escapes(self):
        """Check escape sequences are consumed whole"""
        tokens = Lexer("$\\x41 $\\101 $\\^a \"\\x{1F600}\"").tokenize()
        self.assertEqual(
            [t.text for t in tokens],
            ["$\\x41", "$\\101", "$\\^a", '"\\x{1F600}"'],
        )
        self.assertEqual(tokens[3].value, "\U0001F600")

    def test_invalid_escapes(self):
        """Check malformed escape sequences raise TokenError"""
        for string in [
            '"\\xZZ"',
            '"\\x4"',
            "'\\x{zz}'",
            '"\\x{}"',
            '"\\x{110000}"',
            "$\\xG1",
        ]:
            with self.subTest(string=string):
                with self.assertRaises(TokenError) as context:
                    Lexer(f"ok {string}").tokenize()
                self.assertEqual(context.exception.position.line, 1)

    def test_illegal_character(self):
        """Check illegal characters raise TokenError"""
        with self.assertRaises(TokenError):
            Lexer("a ` b").tokenize()

    def test_lazy(self):
        """Check tokens are produced before later errors are found"""
        tokens = iter(Lexer('a "unterminated'))
        self.assertEqual(next(tokens).text, "a")
        with self.assertRaises(TokenError):
            next(tokens)

    def test_equality(self):
        """Check tokens compare by kind and text, not by position"""
        first = Atom("a", Position("x.erl", 0, 1, 1))
        second = Atom("a", Position("y.erl", 10, 2, 5), True)
        self.assertEqual(first, second)
        self.assertNotEqual(first, Variable("a", first.position))

    def test_position_str(self):
        """Check position rendering"""
        self.assertEqual(str(Position("f.erl", 0, 3, 7)), "f.erl:3:7")
        self.assertEqual(str(Position(None, 0, 1, 1)), "<input>:1:1")


if __name__ == "__main__":
    unittest.main()
