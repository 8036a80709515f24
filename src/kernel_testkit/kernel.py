# kernel-testkit: Kernel Fixture Harness for Functional Tests
# Copyright (c) 2025
# TriFactoria (Andrew Blankfield)
#
# Licensed under the Business Source License 1.1 (BSL 1.1).
# You may use, modify, and redistribute this file under the terms of the BSL.
# On the Change Date (2029-01-01), this file will be licensed under
# the Apache License, Version 2.0.

"""
Application kernel contract.

Minimal bootable application instance used by the test harness:
- plugin registration (name-unique, ordered)
- container building from kernel parameters + YAML root config
- boot / shutdown hooks on plugins
- cache and log directories

Important boundary:
- Kernel does not know about test cases or temp fixtures.
- Fixture behavior lives in fixture_kernel.TestKernel.
"""

from __future__ import annotations

import inspect
import logging
from enum import Enum, auto
from pathlib import Path
from typing import Any

from .config import YamlConfigLoader
from .errors import KernelStateError
from .interfaces import ConfigLoader

logger = logging.getLogger(__name__)


class FixtureState(Enum):
    """Kernel lifecycle state. SHUT_DOWN is terminal."""

    UNBOOTED = auto()
    BOOTED = auto()
    SHUT_DOWN = auto()


# ----------------------------------------------------------------
# Container
# ----------------------------------------------------------------


class Container:
    """Parameters, extension configs and service instances of a kernel."""

    def __init__(self, parameters: dict[str, Any] | None = None) -> None:
        self.parameters: dict[str, Any] = dict(parameters or {})
        self.extensions: dict[str, Any] = {}
        self._services: dict[str, Any] = {}

    def get_parameter(self, name: str) -> Any:
        if name not in self.parameters:
            raise KeyError(f'Unknown parameter "{name}"')
        return self.parameters[name]

    def set(self, name: str, service: Any) -> None:
        self._services[name] = service

    def get(self, name: str) -> Any:
        if name not in self._services:
            raise KeyError(f'Unknown service "{name}"')
        return self._services[name]

    def has(self, name: str) -> bool:
        return name in self._services

    def reset(self) -> None:
        """Drop every service instance; parameters are kept."""
        self._services.clear()


# ----------------------------------------------------------------
# Plugins
# ----------------------------------------------------------------


class Plugin:
    """Unit of functionality registered with a kernel at boot time."""

    container: Container | None = None

    @property
    def name(self) -> str:
        return type(self).__name__

    def build(self, container: Container) -> None:
        """Register services/parameters before any plugin boots."""

    def boot(self) -> None:
        """Called once the container is built."""

    def shutdown(self) -> None:
        """Called when the kernel shuts down (reverse boot order)."""


class FrameworkPlugin(Plugin):
    """Base plugin every kernel gets: exposes the kernel as a service."""

    def __init__(self) -> None:
        self.kernel: Kernel | None = None

    def build(self, container: Container) -> None:
        container.parameters.setdefault("framework.secret", "test")

    def boot(self) -> None:
        if self.container is not None and self.kernel is not None:
            self.container.set("kernel", self.kernel)


# ----------------------------------------------------------------
# Kernel
# ----------------------------------------------------------------


class Kernel:
    """Bootable application instance.

    Subclasses implement ``register_plugins()`` and
    ``load_configuration()``.
    """

    def __init__(self, environment: str, debug: bool) -> None:
        self.environment = environment
        self.debug = bool(debug)
        self.name = "app"
        self.root_dir = self._default_root_dir()
        self.container: Container | None = None
        self.plugins: dict[str, Plugin] = {}
        self.state = FixtureState.UNBOOTED

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(name={self.name!r}, "
            f"environment={self.environment!r}, state={self.state.name})"
        )

    def _default_root_dir(self) -> Path:
        try:
            return Path(inspect.getfile(type(self))).resolve().parent
        except TypeError:
            # Class without a source file (e.g. defined in a REPL)
            return Path.cwd()

    # ---- Paths ----

    @property
    def cache_dir(self) -> Path:
        return self.root_dir / "var" / "cache" / self.environment

    @property
    def log_dir(self) -> Path:
        return self.root_dir / "var" / "logs"

    @property
    def booted(self) -> bool:
        return self.state is FixtureState.BOOTED

    # ---- Extension points ----

    def register_plugins(self) -> list[Plugin]:
        raise NotImplementedError

    def load_configuration(self, loader: ConfigLoader) -> None:
        raise NotImplementedError

    def kernel_parameters(self) -> dict[str, Any]:
        return {
            "kernel.name": self.name,
            "kernel.environment": self.environment,
            "kernel.debug": self.debug,
            "kernel.root_dir": str(self.root_dir),
            "kernel.cache_dir": str(self.cache_dir),
            "kernel.logs_dir": str(self.log_dir),
            "kernel.plugins": list(self.plugins),
        }

    def config_loader(self, container: Container) -> ConfigLoader:
        return YamlConfigLoader(container)

    # ---- Lifecycle ----

    def boot(self) -> None:
        """Register plugins, build the container and boot every plugin."""
        if self.state is FixtureState.BOOTED:
            return
        if self.state is FixtureState.SHUT_DOWN:
            raise KernelStateError(
                f'Kernel "{self.name}" was shut down and cannot be booted again.'
            )

        self.plugins = self._initialize_plugins()

        for path in (self.cache_dir, self.log_dir):
            path.mkdir(parents=True, exist_ok=True)

        self.container = self.build_container()

        for plugin in self.plugins.values():
            plugin.container = self.container
            if isinstance(plugin, FrameworkPlugin):
                plugin.kernel = self
            plugin.boot()

        self.state = FixtureState.BOOTED
        logger.debug(
            "Booted kernel %s (%s, plugins=%s)",
            self.name,
            self.environment,
            ", ".join(self.plugins),
        )

    def build_container(self) -> Container:
        container = Container(self.kernel_parameters())
        self.load_configuration(self.config_loader(container))
        for plugin in self.plugins.values():
            plugin.build(container)
        return container

    def shutdown(self) -> None:
        """Shut every plugin down in reverse order. Safe to call twice."""
        if self.state is FixtureState.SHUT_DOWN:
            return

        was_booted = self.state is FixtureState.BOOTED
        self.state = FixtureState.SHUT_DOWN
        if not was_booted:
            return

        for plugin in reversed(list(self.plugins.values())):
            plugin.shutdown()
            plugin.container = None

        logger.debug("Shut down kernel %s", self.name)

    def _initialize_plugins(self) -> dict[str, Plugin]:
        plugins: dict[str, Plugin] = {}
        for plugin in self.register_plugins():
            name = plugin.name
            if name in plugins:
                raise ValueError(
                    f'Trying to register two plugins with the same name "{name}"'
                )
            plugins[name] = plugin
        return plugins
