# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Protocol definitions for the kernel collaborators.

These interfaces let the lifecycle manager check capabilities
(resettable container, fixture-aware kernel) instead of concrete types.
"""

from __future__ import annotations

from pathlib import Path
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class ResettableContainer(Protocol):
    """Container that can drop its service instances after shutdown."""

    def reset(self) -> None:
        """Forget every instantiated service."""
        ...


class ConfigLoader(Protocol):
    """Protocol for loading a configuration entry file."""

    def load(self, resource: str | Path) -> Any:
        """Load the given configuration file into the target container."""
        ...


@runtime_checkable
class FixtureConfigurable(Protocol):
    """Kernel that binds itself to one test case's configuration directory.

    Kernels opting into this capability get ``test_case``/``config_dir``
    options from the lifecycle manager and have their temp directory
    removed on shutdown.
    """

    def configure(
        self,
        test_case: str,
        config_dir: str | Path,
        root_config: str | Path = "config.yml",
        root_dir: str | Path | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Bind the kernel to ``config_dir/test_case``.

        ``environ`` supplies KERNEL_TEMP_DIR; it is read once, on the
        first call.
        """
        ...

    @property
    def temp_dir(self) -> Path:
        """Per-fixture temporary root (holds cache and logs)."""
        ...
