# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Filesystem discovery and environment resolution for kernel-testkit.

Handles:
- Test-runner configuration directory discovery (CLI args, cwd)
- KERNEL_* environment overrides
- Temp root resolution (KERNEL_TEMP_DIR, system temp dir)
- YAML loading for kernel root configs (imports + parameters)
"""

from __future__ import annotations

import logging
import os
import re
import sys
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from .errors import ConfigNotFound

if TYPE_CHECKING:
    from .kernel import Container

logger = logging.getLogger(__name__)


# -----------------------
# Runner conventions
# -----------------------

RUNNER_NAMES: tuple[str, ...] = ("pytest", "py.test")

# Any of these in the working directory marks it as the config directory
DEFAULT_CONFIG_FILES: tuple[str, ...] = (
    "pytest.ini",
    ".pytest.ini",
    "pyproject.toml",
    "tox.ini",
    "setup.cfg",
)

# "-c" itself or short options bundled in front of it ("-vc")
_SHORT_FLAG_RE = re.compile(r"^-[a-zA-Z]*c$")
_LONG_FLAG = "--configuration"


# -----------------------
# Config directory locator
# -----------------------


class ConfigLocator:
    """Find the directory holding the test-runner configuration file."""

    def __init__(
        self,
        argv: Sequence[str] | None = None,
        cwd: Path | None = None,
    ) -> None:
        self.argv = list(sys.argv if argv is None else argv)
        self.cwd = Path.cwd() if cwd is None else Path(cwd)

    def is_runner(self) -> bool:
        if not self.argv:
            return False
        prog = self.argv[0]
        return any(name in prog for name in RUNNER_NAMES)

    def cli_config_argument(self) -> Path | None:
        """Return the value of the last configuration flag on the command line.

        The runner uses the last occurrence, so argv is scanned in reverse
        and the first hit wins. Supported forms: ``-c PATH``, ``-vc PATH``,
        ``-cPATH``, ``--configuration PATH``, ``--configuration=PATH``.
        """
        args = self.argv
        for index in range(len(args) - 1, -1, -1):
            arg = args[index]
            if _SHORT_FLAG_RE.match(arg) or arg == _LONG_FLAG:
                if index + 1 >= len(args):
                    # Dangling flag; nothing to take
                    continue
                return self._absolute(args[index + 1])
            if arg.startswith(_LONG_FLAG + "="):
                return self._absolute(arg[len(_LONG_FLAG) + 1:])
            if arg.startswith("-c"):
                return self._absolute(arg[2:])
        return None

    def locate_config_dir(self) -> Path:
        """Resolve the configuration directory.

        Resolution order:
        1. Configuration flag on the command line
        2. Working directory, if it holds a default config file

        Raises:
            ConfigNotFound: not running under the test runner, or nothing found
        """
        if not self.is_runner():
            raise ConfigNotFound(
                "Not running under pytest: pass the kernel class and "
                "config_dir explicitly or provide a ConfigLocator."
            )

        path = self.cli_config_argument()
        if path is None and any(
            (self.cwd / name).is_file() for name in DEFAULT_CONFIG_FILES
        ):
            path = self.cwd.resolve()

        if path is None:
            raise ConfigNotFound("Unable to guess the kernel directory.")

        if path.is_file():
            path = path.parent

        logger.debug("Located test configuration directory: %s", path)
        return path

    def _absolute(self, value: str) -> Path:
        path = Path(value).expanduser()
        if not path.is_absolute():
            path = self.cwd / path
        return path.resolve()


# -----------------------
# Environment overrides
# -----------------------


@dataclass(frozen=True)
class KernelEnv:
    """KERNEL_* overrides read from the process environment."""

    kernel_class: str | None = None
    kernel_dir: str | None = None
    environment: str | None = None
    debug: str | None = None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> KernelEnv:
        env = os.environ if environ is None else environ
        return cls(
            kernel_class=env.get("KERNEL_CLASS") or None,
            kernel_dir=env.get("KERNEL_DIR") or None,
            environment=env.get("KERNEL_ENV") or None,
            debug=env.get("KERNEL_DEBUG"),
        )


def get_temp_root(environ: Mapping[str, str] | None = None) -> Path:
    """Get the directory fixture temp trees are created under.

    Resolution order:
    1. KERNEL_TEMP_DIR environment variable (if set)
    2. The system temp directory
    """
    env = os.environ if environ is None else environ
    override = env.get("KERNEL_TEMP_DIR")
    if override:
        return Path(override).expanduser().resolve()
    return Path(tempfile.gettempdir())


# -----------------------
# YAML loading
# -----------------------


def load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file that must contain a mapping (empty file -> {})."""
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"YAML config {path} must load to a mapping/dict.")
    return data


class YamlConfigLoader:
    """Load a kernel root config into a container.

    - ``imports: [{resource: other.yml}]`` are loaded first, relative to the
      importing file
    - ``parameters`` are merged into ``container.parameters``
    - every other top-level key lands in ``container.extensions``
    """

    def __init__(self, container: Container) -> None:
        self.container = container
        self.loaded: list[Path] = []

    def load(self, resource: str | Path) -> dict[str, Any]:
        path = Path(resource)
        if not path.is_file():
            raise FileNotFoundError(f"Missing kernel config: {path}")

        path = path.resolve()
        if path in self.loaded:
            # Already merged (diamond or circular import)
            return {}
        self.loaded.append(path)

        data = load_yaml(path)
        for entry in data.pop("imports", None) or []:
            target = entry.get("resource") if isinstance(entry, dict) else entry
            if not target:
                raise ValueError(f"Import without resource in {path}")
            target_path = Path(target)
            if not target_path.is_absolute():
                target_path = path.parent / target_path
            self.load(target_path)

        parameters = data.pop("parameters", None) or {}
        if not isinstance(parameters, dict):
            raise ValueError(f"'parameters' in {path} must be a mapping.")
        self.container.parameters.update(parameters)

        for key, value in data.items():
            self.container.extensions[key] = value

        logger.debug("Loaded kernel config %s", path)
        return data
