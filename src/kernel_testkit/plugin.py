# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
pytest plugin for kernel fixtures.

Enable it from a conftest.py:

    pytest_plugins = ["kernel_testkit.plugin"]

then request ``kernel_lifecycle`` in a test:

    def test_homepage(kernel_lifecycle):
        kernel = kernel_lifecycle.boot_kernel(
            {"test_case": "Basic", "config_dir": CONFIG_DIR}
        )
"""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from .lifecycle import KernelLifecycleManager


@pytest.fixture
def kernel_lifecycle() -> Iterator[KernelLifecycleManager]:
    """Kernel lifecycle manager shut down after the test, pass or fail."""
    manager = KernelLifecycleManager()
    try:
        yield manager
    finally:
        manager.ensure_shutdown()


@pytest.fixture(scope="session")
def kernel_config_dir(pytestconfig: pytest.Config) -> Path:
    """Directory of the pytest configuration file (or the rootdir)."""
    if pytestconfig.inipath is not None:
        return Path(pytestconfig.inipath).parent
    return Path(pytestconfig.rootpath)
