# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Kernel lifecycle for functional tests.

create -> boot -> (test body) -> shutdown -> container reset -> temp cleanup

One manager owns at most one active kernel. The manager is held by the test
harness (pytest fixture or KernelTestCase), never by module state, so each
worker process of a parallel run gets its own.
"""

from __future__ import annotations

import logging
import unittest
from collections.abc import Mapping
from pathlib import Path
from typing import Any, ClassVar

from .config import ConfigLocator, KernelEnv
from .errors import InvalidArgument
from .fixture_kernel import TestKernel
from .interfaces import FixtureConfigurable, ResettableContainer
from .kernel import Kernel
from .resolver import KernelClassResolver
from .utils import parse_flag, remove_tree

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT = "test"
DEFAULT_ROOT_CONFIG = "config.yml"


class KernelLifecycleManager:
    """Create, boot and tear down one kernel fixture at a time."""

    def __init__(
        self,
        kernel_class: type | None = None,
        *,
        locator: ConfigLocator | None = None,
        environ: Mapping[str, str] | None = None,
        default_kernel_class: type = TestKernel,
    ) -> None:
        self.locator = locator
        self.environ = environ
        self.default_kernel_class = default_kernel_class
        self.kernel: Kernel | None = None
        self._kernel_class = kernel_class

    @property
    def kernel_class(self) -> type:
        """Kernel class, resolved on first use and memoized."""
        if self._kernel_class is None:
            resolver = KernelClassResolver(
                locator=self.locator,
                environ=self.environ,
                default=self.default_kernel_class,
            )
            self._kernel_class = resolver.resolve()
        return self._kernel_class

    def build_options(self, options: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Overlay KERNEL_ENV / KERNEL_DEBUG on the given options."""
        merged = dict(options or {})
        env = KernelEnv.from_environ(self.environ)
        if env.environment is not None:
            merged["environment"] = env.environment
        if env.debug is not None:
            merged["debug"] = env.debug
        return merged

    def create_kernel(self, options: Mapping[str, Any] | None = None) -> Kernel:
        """Instantiate (and configure, when fixture-aware) a kernel.

        Options: environment, debug, test_case, config_dir, root_config,
        root_dir.

        Raises:
            InvalidArgument: fixture-aware kernel without test_case/config_dir
        """
        opts = self.build_options(options)

        environment = opts.get("environment") or DEFAULT_ENVIRONMENT
        debug = parse_flag(opts["debug"]) if opts.get("debug") is not None else True

        kernel = self.kernel_class(environment, debug)

        if isinstance(kernel, FixtureConfigurable):
            for required in ("test_case", "config_dir"):
                if not opts.get(required):
                    raise InvalidArgument(f'The option "{required}" must be set.')

            kernel.configure(
                opts["test_case"],
                opts["config_dir"],
                opts.get("root_config") or DEFAULT_ROOT_CONFIG,
                opts.get("root_dir"),
                environ=self.environ,
            )

        return kernel

    def boot_kernel(self, options: Mapping[str, Any] | None = None) -> Kernel:
        """Shut down any previous kernel, then create and boot a new one."""
        self.ensure_shutdown()

        kernel = self.create_kernel(options)
        # Stored before boot: teardown must also see a kernel whose boot failed
        self.kernel = kernel
        kernel.boot()
        return kernel

    def ensure_shutdown(self) -> None:
        """Shut the active kernel down and delete its temp tree.

        No-op when no kernel is active. The handle is cleared before any
        cleanup step runs; errors from those steps propagate.
        """
        kernel = self.kernel
        if kernel is None:
            return
        self.kernel = None

        container = kernel.container
        try:
            try:
                kernel.shutdown()
            finally:
                if isinstance(container, ResettableContainer):
                    container.reset()
        finally:
            if isinstance(kernel, FixtureConfigurable):
                temp_dir = Path(kernel.temp_dir)
                if remove_tree(temp_dir):
                    logger.debug("Removed kernel temp dir %s", temp_dir)


class KernelTestCase(unittest.TestCase):
    """Base class for unittest-style tests needing a kernel.

    Subclasses may set ``kernel_class`` to skip resolution. The active
    kernel is shut down in a cleanup registered per test, so it runs
    whatever the outcome, including a failing setUp.
    """

    kernel_class: ClassVar[type | None] = None
    lifecycle: ClassVar[KernelLifecycleManager | None] = None

    @classmethod
    def create_lifecycle(cls) -> KernelLifecycleManager:
        return KernelLifecycleManager(cls.kernel_class)

    @classmethod
    def get_lifecycle(cls) -> KernelLifecycleManager:
        # Looked up on cls itself so subclasses never share a manager
        manager = cls.__dict__.get("lifecycle")
        if manager is None:
            manager = cls.create_lifecycle()
            cls.lifecycle = manager
        return manager

    @classmethod
    def boot_kernel(cls, **options: Any) -> Kernel:
        return cls.get_lifecycle().boot_kernel(options)

    @classmethod
    def create_kernel(cls, **options: Any) -> Kernel:
        return cls.get_lifecycle().create_kernel(options)

    @classmethod
    def ensure_kernel_shutdown(cls) -> None:
        manager = cls.__dict__.get("lifecycle")
        if manager is not None:
            manager.ensure_shutdown()

    def __init__(self, methodName: str = "runTest") -> None:
        super().__init__(methodName)
        # Cleanups run even when setUp raises (tearDown does not)
        self.addCleanup(type(self).ensure_kernel_shutdown)
