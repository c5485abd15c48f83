# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause

import contextlib
import io
import logging
import tempfile
import unittest
from pathlib import Path

from erlpp import finder
from erlpp.__main__ import main, respell
from erlpp.errors import UndefinedMacroError
from erlpp.lexer import Lexer


class TestFinder(unittest.TestCase):
    """
    Test discovery and preprocessing of multiple source files.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.rootdir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, relative, contents):
        path = self.rootdir / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(contents)
        return path

    def test_find_sources(self):
        """Check directories are searched for Erlang files"""
        a = self.write("src/a.erl", "")
        b = self.write("include/b.hrl", "")
        self.write("README.txt", "")
        notes = self.write("notes.txt", "")

        sources = finder.find_sources([self.rootdir, notes])
        self.assertCountEqual(sources, [a, b, notes])

    def test_preprocess_files(self):
        """Check each file is preprocessed on its own"""
        first = self.write("first.erl", "-define(X, 1).\n-module(first).\n")
        second = self.write("second.erl", "?X.\n")
        third = self.write("third.erl", "-warning(\"w\").\nok.\n")

        results = finder.preprocess_files([first, second, third])
        self.assertEqual(len(results), 3)

        self.assertTrue(results[0].ok)
        self.assertEqual(results[0].module_name, "first")
        self.assertEqual(len(results[0].tokens), 6)

        # Macros do not leak from one file into the next.
        self.assertFalse(results[1].ok)
        self.assertIsInstance(results[1].error, UndefinedMacroError)

        self.assertTrue(results[2].ok)
        self.assertEqual([t.text for t in results[2].tokens], ["ok", "."])
        self.assertEqual(len(results[2].warnings), 1)

    def test_partial_tokens(self):
        """Check tokens produced before an error are kept"""
        path = self.write("partial.erl", "a.\n-error(\"stop\").\nb.\n")
        results = finder.preprocess_files([path])
        self.assertFalse(results[0].ok)
        self.assertEqual([t.text for t in results[0].tokens], ["a", "."])

    def test_missing_file(self):
        """Check unreadable files are reported"""
        results = finder.preprocess_files([self.rootdir / "missing.erl"])
        self.assertIsInstance(results[0].error, OSError)

    def test_defines(self):
        """Check options are passed to each preprocessor"""
        path = self.write("d.erl", "-ifdef(DEBUG).\n?LEVEL.\n-endif.\n")
        results = finder.preprocess_files(
            [path],
            defines=["DEBUG", "LEVEL=3"],
        )
        self.assertEqual([t.text for t in results[0].tokens], ["3", "."])


class TestMain(unittest.TestCase):
    """
    Test the command-line interface.
    """

    @classmethod
    def setUpClass(self):
        logging.disable()

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.rootdir = Path(self.tmp.name)

    def tearDown(self):
        self.tmp.cleanup()

    def run_main(self, args):
        output = io.StringIO()
        with contextlib.redirect_stdout(output):
            status = main([str(a) for a in args])
        return status, output.getvalue()

    def test_tokens(self):
        """Check each token is printed with its position"""
        path = self.rootdir / "m.erl"
        path.write_text("-define(X, 1).\nf() -> ?X.\n")
        status, output = self.run_main([path])
        self.assertEqual(status, 0)
        lines = output.splitlines()
        self.assertEqual(lines[0], f"[{path}:2:1] f")
        self.assertEqual(lines[4], f"[{path}:1:12] 1")

    def test_spelling(self):
        """Check the source text output"""
        path = self.rootdir / "m.erl"
        path.write_text("-define(X, 1).\nf() -> ?X.\ng() -> 2.\n")
        status, output = self.run_main(["--spelling", path])
        self.assertEqual(status, 0)
        self.assertEqual(output, "f() -> 1.\ng() -> 2.\n")

    def test_summary(self):
        """Check the summary output"""
        path = self.rootdir / "m.erl"
        path.write_text("-define(X, 1).\n?X.\n")
        status, output = self.run_main(["--silent", "--summary", path])
        self.assertEqual(status, 0)
        self.assertEqual(output, f"{path}: 2 tokens, 0 warnings, ok\n")

    def test_options(self):
        """Check include paths, defines and module name"""
        include = self.rootdir / "include"
        include.mkdir()
        (include / "defs.hrl").write_text("-define(INC, inc).\n")
        path = self.rootdir / "src" / "m.erl"
        path.parent.mkdir()
        path.write_text('-include("defs.hrl").\n{?INC, ?D, ?MODULE}.\n')

        status, output = self.run_main(
            ["-I", include, "-D", "D=d", "--module", "m", path],
        )
        self.assertEqual(status, 0)
        self.assertEqual(
            [line.split("] ", 1)[1] for line in output.splitlines()],
            ["{", "inc", ",", "d", ",", "m", "}", "."],
        )

    def test_error(self):
        """Check errors give a non-zero exit status"""
        path = self.rootdir / "m.erl"
        path.write_text("?UNDEFINED.\n")
        status, output = self.run_main(["--silent", path])
        self.assertEqual(status, 1)
        self.assertEqual(output, "")

    def test_respell(self):
        """Check each form is printed on its own line"""
        tokens = Lexer("a(B,  C) ->\n  ok. b.").tokenize()
        self.assertEqual(respell(tokens), "a(B, C) -> ok.\nb.\n")


if __name__ == "__main__":
    unittest.main()
