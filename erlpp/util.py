# Copyright (C) 2019-2024 Intel Corporation
# SPDX-License-Identifier: BSD-3-Clause
"""
Contains utility functions for handling include paths.
"""
from __future__ import annotations

import logging
import os
from pathlib import Path

log = logging.getLogger(__name__)


def valid_path(path: str | os.PathLike[str]) -> bool:
    """
    Check if a given path is usable as an include path.

    Parameters
    ----------
    path: str | os.PathLike[str]
        The path to check.

    Returns
    -------
    bool
        False if the path is empty or contains a null byte.
    """
    string = str(path)
    if not string:
        log.warning("Include path is empty.")
        return False
    if "\x00" in string:
        log.warning(f"Include path '{string!r}' contains a null byte.")
        return False
    return True


def substitute_path_variables(path: str | os.PathLike[str]) -> Path:
    """
    Replace a leading `$VAR` path component with the value of the
    environment variable VAR, if it is set.
    """
    parts = Path(path).parts
    if parts and parts[0].startswith("$"):
        value = os.environ.get(parts[0][1:])
        if value is not None:
            return Path(value, *parts[1:])
    return Path(path)
