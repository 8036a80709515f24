from __future__ import annotations

from pathlib import Path

import pytest

pytest_plugins = ["kernel_testkit.plugin", "pytester"]

KERNEL_VARS = ("KERNEL_CLASS", "KERNEL_DIR", "KERNEL_ENV", "KERNEL_DEBUG")


@pytest.fixture(autouse=True)
def kernel_temp_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep fixture temp trees inside tmp_path and ignore outer KERNEL_* vars."""
    temp = tmp_path / "kernel_tmp"
    monkeypatch.setenv("KERNEL_TEMP_DIR", str(temp))
    for var in KERNEL_VARS:
        monkeypatch.delenv(var, raising=False)
    return temp


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """
    Functional/
        Basic/
            config.yml       imports parameters.yml
            parameters.yml
    """
    root = tmp_path / "Functional"
    case = root / "Basic"
    case.mkdir(parents=True)
    (case / "config.yml").write_text(
        "imports:\n"
        "  - { resource: parameters.yml }\n"
        "framework:\n"
        "  test: true\n",
        encoding="utf-8",
    )
    (case / "parameters.yml").write_text(
        "parameters:\n  locale: en\n",
        encoding="utf-8",
    )
    return root
