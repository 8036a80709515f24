# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Utility functions for kernel-testkit.
"""

import re
import secrets
import shutil
from pathlib import Path

_FALSE_FLAGS = {"", "0", "false", "no", "off"}


def sanitize_name(text: str) -> str:
    """Strip everything but ASCII letters, digits and underscores.

    Args:
        text: Raw name (typically config dir basename + test case)

    Returns:
        Sanitized string, possibly empty
    """
    return re.sub(r"[^a-zA-Z0-9_]+", "", text)


def unique_token() -> str:
    """Return a short random hex token used to keep fixtures apart."""
    return secrets.token_hex(7)


def parse_flag(value: object) -> bool:
    """Interpret an environment-style flag.

    ``"0"``, ``"false"``, ``"no"``, ``"off"`` and the empty string are false,
    anything else is true. Non-string values go through ``bool()``.
    """
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_FLAGS
    return bool(value)


def remove_tree(path: Path) -> bool:
    """Recursively delete ``path``.

    A missing path is not an error, so calling this twice is safe.

    Returns:
        True if something was removed
    """
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
        return True
    if path.exists() or path.is_symlink():
        path.unlink()
        return True
    return False
