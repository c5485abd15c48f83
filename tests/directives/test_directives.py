# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import logging
import unittest

from erlpp.errors import (
    MacroAlreadyDefinedError,
    PreprocessSyntaxError,
    ReservedMacroError,
    UndefinedMacroError,
    UserError,
)
from erlpp.lexer import Lexer
from erlpp.preprocessor import (
    DefineNode,
    DirectiveParser,
    ElseNode,
    EndifNode,
    ErrorNode,
    FileNode,
    IfdefNode,
    IfndefNode,
    IncludeLibNode,
    IncludeNode,
    Preprocessor,
    UndefNode,
    WarningNode,
    preprocess_string,
)


def texts(string, **kwargs):
    return [t.text for t in preprocess_string(string, **kwargs)]


def parse(string):
    return DirectiveParser(Lexer(string).tokenize()).parse()


class TestDirectiveParser(unittest.TestCase):
    """
    Test ability to parse directives.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_define(self):
        """-define(NAME, body)."""
        node = parse("-define(TIMEOUT, 5 * 1000).")
        self.assertIsInstance(node, DefineNode)
        self.assertEqual(node.identifier.text, "TIMEOUT")
        self.assertIsNone(node.args)
        self.assertEqual([t.text for t in node.value], ["5", "*", "1000"])
        self.assertEqual(node.keyword, "define")

    def test_define_function(self):
        """-define(NAME(Args), body)."""
        node = parse("-define(ADD(A, B), A + B).")
        self.assertIsInstance(node, DefineNode)
        self.assertEqual([a.text for a in node.args], ["A", "B"])
        self.assertEqual([t.text for t in node.value], ["A", "+", "B"])

        node = parse("-define(NOW(), erlang:now()).")
        self.assertEqual(node.args, [])
        self.assertEqual(
            [t.text for t in node.value],
            ["erlang", ":", "now", "(", ")"],
        )

    def test_define_empty(self):
        """-define(NAME, )."""
        node = parse("-define(EMPTY, ).")
        self.assertEqual(node.value, [])

    def test_define_invalid(self):
        """Check malformed definitions"""
        cases = [
            "-define(X).",
            "-define(1, x).",
            "-define(F(X, X), X).",
            "-define(F(x), x).",
            "-define(F(X) X).",
            "-define(X, 1.",
        ]
        for string in cases:
            with self.subTest(string=string):
                with self.assertRaises(PreprocessSyntaxError):
                    parse(string)

    def test_names(self):
        """Check directives that take a macro name"""
        self.assertIsInstance(parse("-undef(X)."), UndefNode)
        self.assertIsInstance(parse("-ifdef(X)."), IfdefNode)
        self.assertIsInstance(parse("-ifndef(x)."), IfndefNode)
        with self.assertRaises(PreprocessSyntaxError):
            parse("-undef(X, Y).")
        with self.assertRaises(PreprocessSyntaxError):
            parse('-ifdef("X").')

    def test_else_endif(self):
        """Check directives without arguments"""
        self.assertIsInstance(parse("-else."), ElseNode)
        self.assertIsInstance(parse("-endif."), EndifNode)
        with self.assertRaises(PreprocessSyntaxError):
            parse("-endif(X).")

    def test_include(self):
        """Check -include and -include_lib"""
        node = parse('-include("defs.hrl").')
        self.assertIsInstance(node, IncludeNode)
        self.assertEqual(node.path.value, "defs.hrl")

        node = parse('-include_lib("kernel/include/file.hrl").')
        self.assertIsInstance(node, IncludeLibNode)
        self.assertEqual(node.path.value, "kernel/include/file.hrl")

        with self.assertRaises(PreprocessSyntaxError):
            parse("-include(defs).")

    def test_messages(self):
        """Check -error and -warning text"""
        node = parse('-warning("take care").')
        self.assertIsInstance(node, WarningNode)
        self.assertEqual(node.message, "take care")

        node = parse("-error({not_supported, 42}).")
        self.assertIsInstance(node, ErrorNode)
        self.assertEqual(node.message, "{ not_supported , 42 }")

        with self.assertRaises(PreprocessSyntaxError):
            parse("-error().")

    def test_file(self):
        """Check -file"""
        node = parse('-file("orig.erl", 16#10).')
        self.assertIsInstance(node, FileNode)
        self.assertEqual(node.filename.value, "orig.erl")
        self.assertEqual(node.line.text, "16#10")

        with self.assertRaises(PreprocessSyntaxError):
            parse('-file("orig.erl").')

    def test_error_position(self):
        """Check syntax errors point at the offending token"""
        with self.assertRaises(PreprocessSyntaxError) as context:
            parse("-define(1, x).")
        self.assertEqual(context.exception.position.column, 9)

    def test_spelling(self):
        """Check directives can be spelled as written"""
        self.assertEqual(
            parse("-define(A, {1, 2}).").spelling(),
            ["-define(A, {1, 2})."],
        )


class TestDirectives(unittest.TestCase):
    """
    Test the effect of directives on the output.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def test_removed(self):
        """Check directive forms produce no tokens"""
        self.assertEqual(
            texts("-define(A, 1).\n-undef(A).\n-ifdef(A).\n-endif.\nok."),
            ["ok", "."],
        )

    def test_attributes_pass_through(self):
        """Check other attributes are left alone"""
        text = "-module(m).\n-export([f/0]).\nf() -> - 1."
        self.assertEqual(
            texts(text),
            [t.text for t in Lexer(text).tokenize()],
        )

    def test_minus_inside_form(self):
        """Check '-' only starts a directive at the start of a form"""
        self.assertEqual(
            texts("a - define(1)."),
            ["a", "-", "define", "(", "1", ")", "."],
        )

    def test_redefine(self):
        """Check redefinition without -undef"""
        with self.assertRaises(MacroAlreadyDefinedError) as context:
            texts("-define(X, 1).\n-define(X, 2).")
        self.assertEqual(context.exception.position.line, 2)
        self.assertEqual(context.exception.original.line, 1)

    def test_undef_redefine(self):
        """Check a macro can be redefined after -undef"""
        self.assertEqual(
            texts("-define(A, 1). -undef(A). -define(A, 2). ?A."),
            ["2", "."],
        )

    def test_undef_unknown(self):
        """Check -undef of an unknown macro"""
        with self.assertRaises(UndefinedMacroError):
            texts("-undef(A).")

    def test_reserved(self):
        """Check predefined macros cannot be redefined"""
        with self.assertRaises(ReservedMacroError):
            texts("-define(LINE, 1).")
        with self.assertRaises(ReservedMacroError):
            texts("-undef(MODULE).")

    def test_missing_dot(self):
        """Check a directive must end with '.'"""
        with self.assertRaises(PreprocessSyntaxError):
            texts("-define(X, 1)")

    def test_error(self):
        """Check -error stops preprocessing"""
        with self.assertRaises(UserError) as context:
            texts('ok.\n-error("unsupported").')
        self.assertEqual(context.exception.message, "unsupported")
        self.assertEqual(context.exception.position.line, 2)

    def test_warning(self):
        """Check -warning is recorded and preprocessing continues"""
        preprocessor = Preprocessor(Lexer('-warning("careful"). ok.'))
        self.assertEqual([t.text for t in preprocessor], ["ok", "."])
        self.assertEqual(len(preprocessor.warnings), 1)
        warning = preprocessor.warnings[0]
        self.assertEqual(warning.message, "careful")
        self.assertEqual(warning.position.column, 1)
        self.assertEqual(str(warning), "<input>:1:1: careful")

    def test_file(self):
        """Check -file changes FILE and LINE but not token positions"""
        text = '-file("orig.erl", 100).\nline(?LINE, ?FILE).'
        tokens = preprocess_string(text, "gen.erl")
        self.assertEqual(
            [t.text for t in tokens],
            ["line", "(", "100", ",", '"orig.erl"', ")", "."],
        )
        self.assertEqual(tokens[0].position.filename, "gen.erl")
        self.assertEqual(tokens[0].position.line, 2)

    def test_directives_recorded(self):
        """Check executed directives are recorded in order"""
        preprocessor = Preprocessor(
            Lexer("-define(A, 1). -ifdef(A). -undef(A). -endif."),
        )
        list(preprocessor)
        self.assertEqual(
            [type(d) for d in preprocessor.directives],
            [DefineNode, IfdefNode, UndefNode, EndifNode],
        )


if __name__ == "__main__":
    unittest.main()
