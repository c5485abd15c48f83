# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains the MacroTable class used to store the macro definitions seen by
a single preprocessor run.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import TYPE_CHECKING

from erlpp.errors import (
    ArityMismatchError,
    MacroAlreadyDefinedError,
    ReservedMacroError,
    UndefinedMacroError,
)

if TYPE_CHECKING:
    from erlpp.lexer import Position
    from erlpp.preprocessor import Macro

log = logging.getLogger(__name__)

# Macros whose value is computed from the preprocessor state at the point
# of expansion. They always exist and can never be redefined.
PREDEFINED_MACROS = frozenset(
    ["LINE", "FILE", "MODULE", "MODULE_STRING", "MACHINE"],
)


def _arity_str(arity: int | None) -> str:
    if arity is None:
        return "without arguments"
    return f"with {arity} argument(s)"


class MacroTable:
    """
    Represents every macro definition, keyed by name and arity.

    A name may have one definition without arguments and one definition
    per argument count at the same time. `None` is used as the arity of a
    macro without arguments, which is distinct from an arity of 0.
    """

    def __init__(self) -> None:
        self._definitions: dict[str, dict[int | None, Macro]] = {}

    def __contains__(self, name: object) -> bool:
        return name in self._definitions

    def __iter__(self) -> Iterator[Macro]:
        for variants in self._definitions.values():
            yield from variants.values()

    def __len__(self) -> int:
        return sum(len(v) for v in self._definitions.values())

    @staticmethod
    def is_predefined(name: str) -> bool:
        return name in PREDEFINED_MACROS

    def define(self, macro: Macro) -> None:
        """
        Define a macro, as if the preprocessor encountered -define.

        Raises
        ------
        ReservedMacroError
            If the name belongs to a predefined macro.

        MacroAlreadyDefinedError
            If a macro with the same name and arity is already defined.
        """
        if self.is_predefined(macro.name):
            raise ReservedMacroError(
                f"Cannot redefine predefined macro '{macro.name}'.",
                macro.position,
            )

        variants = self._definitions.setdefault(macro.name, {})
        if macro.arity in variants:
            original = variants[macro.arity]
            raise MacroAlreadyDefinedError(
                f"Macro '{macro.name}' {_arity_str(macro.arity)} is "
                + f"already defined at {original.position}.",
                macro.position,
                original.position,
            )
        variants[macro.arity] = macro
        log.debug(f"Defined {macro!r}")

    def undef(self, name: str, position: Position | None = None) -> None:
        """
        Remove every definition of the macro called `name`.

        Raises
        ------
        ReservedMacroError
            If the name belongs to a predefined macro.

        UndefinedMacroError
            If no macro called `name` is defined.
        """
        if self.is_predefined(name):
            raise ReservedMacroError(
                f"Cannot undefine predefined macro '{name}'.",
                position,
            )
        if name not in self._definitions:
            raise UndefinedMacroError(
                f"Cannot undefine unknown macro '{name}'.",
                position,
            )
        del self._definitions[name]
        log.debug(f"Undefined {name}")

    def is_defined(self, name: str) -> bool:
        """
        Return True if any variant of the macro called `name` is defined.
        """
        return self.is_predefined(name) or name in self._definitions

    def arities(self, name: str) -> set[int | None]:
        """
        Return the arities for which the macro called `name` is defined.
        """
        return set(self._definitions.get(name, {}))

    def get(self, name: str, arity: int | None) -> Macro | None:
        """
        Returns
        -------
        Macro | None
            The macro associated with `name` and `arity`, or None.
        """
        return self._definitions.get(name, {}).get(arity)

    def lookup(
        self,
        name: str,
        arity: int | None,
        position: Position | None = None,
    ) -> Macro:
        """
        Return the macro associated with `name` and `arity`.

        Raises
        ------
        UndefinedMacroError
            If no macro called `name` is defined.

        ArityMismatchError
            If the macro is only defined for other arities.
        """
        macro = self.get(name, arity)
        if macro is not None:
            return macro
        if name not in self._definitions:
            raise UndefinedMacroError(f"Undefined macro '{name}'.", position)
        arities = sorted(
            self.arities(name),
            key=lambda a: -1 if a is None else a,
        )
        defined = ", ".join(_arity_str(a) for a in arities)
        raise ArityMismatchError(
            f"Macro '{name}' {_arity_str(arity)} is not defined "
            + f"(defined {defined}).",
            position,
        )
