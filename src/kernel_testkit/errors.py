# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Exception taxonomy for kernel-testkit.

Every error is fatal for the test that triggered it: nothing here is
retried, and no partially configured kernel is ever handed back.
"""

from __future__ import annotations


class KernelTestkitError(Exception):
    """Base class for all kernel-testkit errors."""


class ConfigNotFound(KernelTestkitError, RuntimeError):
    """No usable test-runner configuration directory could be located."""


class KernelClassNotFound(KernelTestkitError, RuntimeError):
    """A kernel class override or directory scan did not yield one class."""


class InvalidArgument(KernelTestkitError, ValueError):
    """Missing test case, missing root config or missing fixture option."""


class ManifestFormatError(KernelTestkitError, RuntimeError):
    """A plugin manifest exists but does not declare a list of plugins."""


class KernelStateError(KernelTestkitError, RuntimeError):
    """A kernel was asked to boot after it was shut down."""
