# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
kernel-testkit core package.

Boot an application kernel per functional test, bound to a test case
configuration directory, and tear it down afterwards.
"""
from .config import ConfigLocator as ConfigLocator  # noqa: F401 (re-export)
from .errors import (  # noqa: F401 (re-export)
    ConfigNotFound as ConfigNotFound,
    InvalidArgument as InvalidArgument,
    KernelClassNotFound as KernelClassNotFound,
    KernelStateError as KernelStateError,
    KernelTestkitError as KernelTestkitError,
    ManifestFormatError as ManifestFormatError,
)
from .fixture_kernel import TestKernel as TestKernel  # noqa: F401 (re-export)
from .kernel import (  # noqa: F401 (re-export)
    Container as Container,
    FixtureState as FixtureState,
    FrameworkPlugin as FrameworkPlugin,
    Kernel as Kernel,
    Plugin as Plugin,
)
from .lifecycle import (  # noqa: F401 (re-export)
    KernelLifecycleManager as KernelLifecycleManager,
    KernelTestCase as KernelTestCase,
)
from .resolver import KernelClassResolver as KernelClassResolver  # noqa: F401 (re-export)
