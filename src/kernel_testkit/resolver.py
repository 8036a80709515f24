# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Kernel class resolution.

Sources are tried in order; the first one returning a class wins:

1. ExplicitNameSource       KERNEL_CLASS="package.module:Class"
2. ExplicitDirectorySource  KERNEL_DIR=path (relative to the config dir)
3. ConventionScanSource     *Kernel.py next to the runner config
4. DefaultSource            built-in TestKernel
"""

from __future__ import annotations

import fnmatch
import hashlib
import importlib
import importlib.util
import inspect
import logging
import sys
from collections.abc import Mapping, Sequence
from pathlib import Path
from types import ModuleType
from typing import Protocol

from .config import ConfigLocator, KernelEnv
from .errors import KernelClassNotFound
from .fixture_kernel import TestKernel
from .kernel import Kernel

logger = logging.getLogger(__name__)

KERNEL_FILE_PATTERN = "*Kernel.py"


# ----------------------------------------------------------------
# Directory scanning
# ----------------------------------------------------------------


def find_kernel_class_in_directory(directory: Path) -> type | None:
    """Load the single ``*Kernel.py`` file in ``directory`` and return its class.

    Non-recursive. Returns None when no kernel file exists.

    Raises:
        KernelClassNotFound: missing directory, several kernel files, or a
            kernel file that does not define exactly one Kernel subclass
    """
    if not directory.is_dir():
        raise KernelClassNotFound(f'Kernel directory "{directory}" does not exist.')

    candidates = sorted(
        p for p in directory.iterdir()
        if p.is_file() and fnmatch.fnmatchcase(p.name, KERNEL_FILE_PATTERN)
    )
    if not candidates:
        return None
    if len(candidates) > 1:
        names = ", ".join(p.name for p in candidates)
        raise KernelClassNotFound(
            f'Ambiguous kernel files in "{directory}": {names}'
        )

    module = _load_module(candidates[0])
    classes = [
        obj for _, obj in inspect.getmembers(module, inspect.isclass)
        if obj.__module__ == module.__name__
    ]
    if len(classes) != 1:
        raise KernelClassNotFound(
            f'Expected exactly one class in "{candidates[0]}", '
            f"found {len(classes)}."
        )
    if not issubclass(classes[0], Kernel):
        raise KernelClassNotFound(
            f'Class "{classes[0].__qualname__}" in "{candidates[0]}" is not a Kernel.'
        )

    logger.debug("Found kernel class %s in %s", classes[0].__qualname__, directory)
    return classes[0]


def _module_name(path: Path) -> str:
    digest = hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:12]
    return f"_kernel_testkit_scan_{path.stem}_{digest}"


def _load_module(path: Path) -> ModuleType:
    path = path.resolve()
    name = _module_name(path)
    if name in sys.modules:
        return sys.modules[name]

    spec = importlib.util.spec_from_file_location(name, path)
    if spec is None or spec.loader is None:
        raise KernelClassNotFound(f'Cannot load kernel file "{path}"')

    module = importlib.util.module_from_spec(spec)
    # Registered before exec so the classes stay importable (pickle)
    sys.modules[name] = module
    try:
        spec.loader.exec_module(module)
    except BaseException:
        del sys.modules[name]
        raise
    return module


def import_class(dotted: str) -> type:
    """Import ``package.module:Class`` or ``package.module.Class``."""
    if ":" in dotted:
        module_name, _, attr = dotted.partition(":")
    else:
        module_name, _, attr = dotted.rpartition(".")

    if not module_name or not attr:
        raise KernelClassNotFound(f'Test kernel class "{dotted}" is not a dotted path.')

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise KernelClassNotFound(
            f'Test kernel class "{dotted}" specified by KERNEL_CLASS does not exist'
        ) from exc

    obj = module
    for part in attr.split("."):
        obj = getattr(obj, part, None)
        if obj is None:
            break
    if not inspect.isclass(obj):
        raise KernelClassNotFound(
            f'Test kernel class "{dotted}" specified by KERNEL_CLASS does not exist'
        )
    return obj


# ----------------------------------------------------------------
# Sources
# ----------------------------------------------------------------


class KernelClassSource(Protocol):
    """One way of finding the kernel class; None means "not applicable"."""

    def resolve(self) -> type | None: ...


class ExplicitNameSource:
    def __init__(self, env: KernelEnv) -> None:
        self.env = env

    def resolve(self) -> type | None:
        if not self.env.kernel_class:
            return None
        return import_class(self.env.kernel_class)


class ExplicitDirectorySource:
    def __init__(self, env: KernelEnv, locator: ConfigLocator) -> None:
        self.env = env
        self.locator = locator

    def resolve(self) -> type | None:
        if not self.env.kernel_dir:
            return None

        directory = Path(self.env.kernel_dir).expanduser()
        if not directory.is_absolute():
            directory = self.locator.locate_config_dir() / directory

        kernel_class = find_kernel_class_in_directory(directory)
        if kernel_class is None:
            raise KernelClassNotFound(
                f'There is no test kernel class in specified KERNEL_DIR "{directory}"'
            )
        return kernel_class


class ConventionScanSource:
    def __init__(self, locator: ConfigLocator) -> None:
        self.locator = locator

    def resolve(self) -> type | None:
        return find_kernel_class_in_directory(self.locator.locate_config_dir())


class DefaultSource:
    def __init__(self, kernel_class: type = TestKernel) -> None:
        self.kernel_class = kernel_class

    def resolve(self) -> type | None:
        return self.kernel_class


# ----------------------------------------------------------------
# Resolver
# ----------------------------------------------------------------


class KernelClassResolver:
    """Try each source in order and return the first class found."""

    def __init__(
        self,
        locator: ConfigLocator | None = None,
        environ: Mapping[str, str] | None = None,
        default: type = TestKernel,
        sources: Sequence[KernelClassSource] | None = None,
    ) -> None:
        self.locator = locator if locator is not None else ConfigLocator()
        self.env = KernelEnv.from_environ(environ)
        if sources is None:
            sources = [
                ExplicitNameSource(self.env),
                ExplicitDirectorySource(self.env, self.locator),
                ConventionScanSource(self.locator),
                DefaultSource(default),
            ]
        self.sources = list(sources)

    def resolve(self) -> type:
        for source in self.sources:
            kernel_class = source.resolve()
            if kernel_class is not None:
                logger.debug(
                    "Resolved kernel class %s via %s",
                    kernel_class.__qualname__,
                    type(source).__name__,
                )
                return kernel_class
        raise KernelClassNotFound("No kernel class source produced a class.")
