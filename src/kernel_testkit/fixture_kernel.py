# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Kernel for functional / integration tests.

A TestKernel binds itself to one test case directory:

    <config_dir>/
        <test_case>/
            config.yml      root config (YAML, may import others)
            plugins.py      optional, defines PLUGINS = [...]

Cache and logs live in a per-fixture temp tree named after the generated
kernel name, so repeated or parallel runs never share state. The name is
generated once and survives serialize()/restore() and pickling.
"""

from __future__ import annotations

import json
import logging
import os
import runpy
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from .config import get_temp_root
from .errors import InvalidArgument, ManifestFormatError
from .interfaces import ConfigLoader
from .kernel import FrameworkPlugin, Kernel, Plugin
from .utils import sanitize_name, unique_token

logger = logging.getLogger(__name__)

PLUGIN_MANIFEST = "plugins.py"


@dataclass(frozen=True)
class KernelSnapshot:
    """Serializable identity of a configured TestKernel."""

    environment: str
    debug: bool
    test_case: str
    config_dir: str
    root_config: str
    root_dir: str
    name: str
    # Absent in snapshots taken before the temp root was recorded
    temp_root: str | None = None


class TestKernel(Kernel):
    """Kernel bound to a single test case configuration."""

    # Not a test class, despite the name
    __test__ = False

    def __init__(self, environment: str = "test", debug: bool = True) -> None:
        super().__init__(environment, debug)
        self.test_case: str | None = None
        self.config_dir: Path | None = None
        self.root_config: Path | None = None
        self.temp_root: Path = get_temp_root()
        self._identity_fixed = False

    # ---- Configuration ----

    def configure(
        self,
        test_case: str,
        config_dir: str | Path,
        root_config: str | Path = "config.yml",
        root_dir: str | Path | None = None,
        *,
        unique_token: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Bind the kernel to ``config_dir/test_case``.

        If root_dir is not given it is set to config_dir. A root_dir that
        does not exist is created and is not cleaned up by the harness.

        The first call fixes the kernel identity: the generated name and
        the temp root (KERNEL_TEMP_DIR from ``environ``, else the system
        temp dir). Later calls rebind paths but keep both, so the tree
        removed on shutdown is always the one the kernel booted into.

        Raises:
            InvalidArgument: test case directory or root config is missing
        """
        config_path = Path(config_dir).resolve()
        if not (config_path / test_case).is_dir():
            raise InvalidArgument(f'The test case "{test_case}" does not exist.')

        root_config_path = Path(root_config)
        if not root_config_path.is_absolute():
            root_config_path = config_path / test_case / root_config_path
            if not root_config_path.exists():
                raise InvalidArgument(
                    f'The root config "{root_config_path}" does not exist.'
                )

        root_path = Path(root_dir) if root_dir else config_path
        root_path.mkdir(parents=True, exist_ok=True)

        self.root_dir = root_path.resolve()
        self.config_dir = config_path
        self.test_case = test_case
        self.root_config = root_config_path
        if not self._identity_fixed:
            self.temp_root = get_temp_root(environ)
            self.name = self._generate_name(config_path, test_case, unique_token)
            self._identity_fixed = True

        logger.debug(
            "Configured test kernel %s (test_case=%s, config_dir=%s)",
            self.name,
            test_case,
            config_path,
        )

    @staticmethod
    def _generate_name(config_dir: Path, test_case: str, token: str | None) -> str:
        base = config_dir.name + test_case.replace(os.sep, "_")
        return sanitize_name(base) + (token if token is not None else unique_token())

    def _require_configured(self) -> tuple[str, Path, Path]:
        if self.test_case is None or self.config_dir is None or self.root_config is None:
            raise InvalidArgument(
                f"{type(self).__name__} must be configured with a test case first."
            )
        return self.test_case, self.config_dir, self.root_config

    # ---- Plugins ----

    def base_plugins(self) -> list[Plugin]:
        return [FrameworkPlugin()]

    def register_plugins(self) -> list[Plugin]:
        test_case, config_dir, _ = self._require_configured()
        plugins = self.base_plugins()

        manifest = config_dir / test_case / PLUGIN_MANIFEST
        if manifest.is_file():
            declared = runpy.run_path(str(manifest)).get("PLUGINS")
            if not isinstance(declared, list):
                raise ManifestFormatError(
                    f'It is required to define a PLUGINS list in "{manifest}"'
                )
            plugins.extend(declared)

        return plugins

    # ---- Paths ----

    @property
    def temp_dir(self) -> Path:
        return self.temp_root / self.name

    @property
    def cache_dir(self) -> Path:
        test_case, _, _ = self._require_configured()
        return self.temp_dir / test_case / "cache" / self.environment

    @property
    def log_dir(self) -> Path:
        test_case, _, _ = self._require_configured()
        return self.temp_dir / test_case / "logs"

    # ---- Container ----

    def load_configuration(self, loader: ConfigLoader) -> None:
        _, _, root_config = self._require_configured()
        loader.load(root_config)

    def kernel_parameters(self) -> dict[str, Any]:
        parameters = super().kernel_parameters()
        parameters["kernel.test_case"] = self.test_case
        parameters["kernel.config_dir"] = str(self.config_dir)
        return parameters

    # ---- Serialization ----

    def snapshot(self) -> KernelSnapshot:
        test_case, config_dir, root_config = self._require_configured()
        return KernelSnapshot(
            environment=self.environment,
            debug=self.debug,
            test_case=test_case,
            config_dir=str(config_dir),
            root_config=str(root_config),
            root_dir=str(self.root_dir),
            name=self.name,
            temp_root=str(self.temp_root),
        )

    def serialize(self) -> bytes:
        return json.dumps(asdict(self.snapshot())).encode("utf-8")

    @classmethod
    def restore(cls, data: bytes) -> TestKernel:
        """Rebuild a kernel from serialize() output, keeping its name."""
        snapshot = KernelSnapshot(**json.loads(data.decode("utf-8")))
        kernel = cls(snapshot.environment, snapshot.debug)
        kernel._apply_snapshot(snapshot)
        return kernel

    def _apply_snapshot(self, snapshot: KernelSnapshot) -> None:
        # Persisted identity goes in first so configure() never regenerates it
        self.name = snapshot.name
        if snapshot.temp_root is not None:
            self.temp_root = Path(snapshot.temp_root)
        self._identity_fixed = True
        self.configure(
            snapshot.test_case,
            snapshot.config_dir,
            snapshot.root_config,
            snapshot.root_dir,
        )

    def __getstate__(self) -> dict[str, Any]:
        return asdict(self.snapshot())

    def __setstate__(self, state: dict[str, Any]) -> None:
        snapshot = KernelSnapshot(**state)
        self.__init__(snapshot.environment, snapshot.debug)
        self._apply_snapshot(snapshot)
