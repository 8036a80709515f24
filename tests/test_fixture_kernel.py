# tests/test_fixture_kernel.py
"""
TestKernel: binding to a test case directory, per-fixture paths,
plugin manifests and identity-preserving serialization.
"""
from __future__ import annotations

import json
import pickle
from pathlib import Path

import pytest

from kernel_testkit.errors import InvalidArgument, ManifestFormatError
from kernel_testkit.fixture_kernel import KernelSnapshot, TestKernel
from kernel_testkit.interfaces import FixtureConfigurable
from kernel_testkit.kernel import FixtureState, FrameworkPlugin

# ----------------------------------------------------------------
# configure()
# ----------------------------------------------------------------


def test_configure_binds_test_case(config_dir: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir, unique_token="abc123")

    assert kernel.test_case == "Basic"
    assert kernel.config_dir == config_dir.resolve()
    assert kernel.root_config == config_dir.resolve() / "Basic" / "config.yml"
    assert kernel.root_dir == config_dir.resolve()
    assert kernel.name == "FunctionalBasicabc123"


def test_paths_nest_under_single_fixture_root(config_dir: Path, kernel_temp_root: Path):
    kernel = TestKernel("dev", True)
    kernel.configure("Basic", config_dir, unique_token="t1")

    assert kernel.temp_dir == kernel_temp_root.resolve() / kernel.name
    assert kernel.cache_dir == kernel.temp_dir / "Basic" / "cache" / "dev"
    assert kernel.log_dir == kernel.temp_dir / "Basic" / "logs"


def test_missing_test_case_fails_before_creating_root_dir(config_dir: Path, tmp_path: Path):
    root_dir = tmp_path / "root"
    kernel = TestKernel()

    with pytest.raises(InvalidArgument, match='test case "nope" does not exist'):
        kernel.configure("nope", config_dir, "config.yml", root_dir)

    assert not root_dir.exists()
    assert kernel.test_case is None


def test_missing_root_config_fails(config_dir: Path, tmp_path: Path):
    root_dir = tmp_path / "root"
    with pytest.raises(InvalidArgument, match="root config"):
        TestKernel().configure("Basic", config_dir, "missing.yml", root_dir)
    assert not root_dir.exists()


def test_absolute_root_config_is_used_as_is(config_dir: Path, tmp_path: Path):
    other = tmp_path / "elsewhere.yml"
    other.write_text("parameters: {}\n", encoding="utf-8")

    kernel = TestKernel()
    kernel.configure("Basic", config_dir, other)

    assert kernel.root_config == other


def test_root_dir_is_created_when_missing(config_dir: Path, tmp_path: Path):
    root_dir = tmp_path / "var" / "app"
    kernel = TestKernel()
    kernel.configure("Basic", config_dir, root_dir=root_dir)

    assert root_dir.is_dir()
    assert kernel.root_dir == root_dir.resolve()


def test_nested_test_case_name_is_sanitized(config_dir: Path):
    (config_dir / "Group" / "Deep").mkdir(parents=True)
    (config_dir / "Group" / "Deep" / "config.yml").write_text("", encoding="utf-8")

    kernel = TestKernel()
    kernel.configure("Group/Deep", config_dir, unique_token="x")

    assert kernel.name == "FunctionalGroup_Deepx"


def test_generated_name_is_unique_per_fixture(config_dir: Path):
    a, b = TestKernel(), TestKernel()
    a.configure("Basic", config_dir)
    b.configure("Basic", config_dir)

    assert a.name != b.name
    assert a.name.startswith("FunctionalBasic")


def test_fixtures_with_different_tokens_do_not_collide(config_dir: Path):
    a, b = TestKernel(), TestKernel()
    a.configure("Basic", config_dir, unique_token="one")
    b.configure("Basic", config_dir, unique_token="two")

    a.boot()
    b.boot()

    assert a.temp_dir != b.temp_dir
    assert a.cache_dir.is_dir() and b.cache_dir.is_dir()
    assert not a.cache_dir.is_relative_to(b.temp_dir)
    assert not b.log_dir.is_relative_to(a.temp_dir)


def test_reconfigure_keeps_name_and_temp_root(config_dir: Path, tmp_path: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)
    name, temp_dir = kernel.name, kernel.temp_dir

    kernel.configure(
        "Basic", config_dir, root_dir=tmp_path / "other",
        environ={"KERNEL_TEMP_DIR": str(tmp_path / "elsewhere")},
    )

    assert kernel.name == name
    assert kernel.temp_dir == temp_dir
    assert kernel.root_dir == (tmp_path / "other").resolve()


def test_temp_root_is_read_from_given_environ(config_dir: Path, tmp_path: Path):
    kernel = TestKernel()
    kernel.configure(
        "Basic", config_dir, unique_token="e",
        environ={"KERNEL_TEMP_DIR": str(tmp_path / "injected")},
    )

    assert kernel.temp_dir == (tmp_path / "injected").resolve() / "FunctionalBasice"


def test_temp_root_ignores_later_environment_changes(
    config_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)
    temp_dir = kernel.temp_dir

    monkeypatch.setenv("KERNEL_TEMP_DIR", str(tmp_path / "moved"))

    assert kernel.temp_dir == temp_dir


def test_is_fixture_configurable_and_not_collected():
    assert isinstance(TestKernel(), FixtureConfigurable)
    assert TestKernel.__test__ is False


def test_unconfigured_kernel_cannot_register_plugins():
    with pytest.raises(InvalidArgument):
        TestKernel().register_plugins()


# ----------------------------------------------------------------
# Plugins manifest
# ----------------------------------------------------------------


def test_register_plugins_defaults_to_framework_plugin(config_dir: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)

    plugins = kernel.register_plugins()

    assert len(plugins) == 1
    assert isinstance(plugins[0], FrameworkPlugin)


def test_register_plugins_appends_manifest(config_dir: Path):
    (config_dir / "Basic" / "plugins.py").write_text(
        "from kernel_testkit.kernel import Plugin\n"
        "\n"
        "class AcmePlugin(Plugin):\n"
        "    pass\n"
        "\n"
        "PLUGINS = [AcmePlugin()]\n",
        encoding="utf-8",
    )
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)

    names = [p.name for p in kernel.register_plugins()]

    assert names == ["FrameworkPlugin", "AcmePlugin"]


@pytest.mark.parametrize(
    "body",
    [
        "PLUGINS = 'not a list'\n",
        "PLUGINS = ()\n",
        "OTHER = []\n",
    ],
)
def test_manifest_must_declare_plugins_list(config_dir: Path, body: str):
    (config_dir / "Basic" / "plugins.py").write_text(body, encoding="utf-8")
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)

    with pytest.raises(ManifestFormatError):
        kernel.register_plugins()


# ----------------------------------------------------------------
# Boot
# ----------------------------------------------------------------


def test_boot_loads_root_config_and_fixture_parameters(config_dir: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)
    kernel.boot()

    container = kernel.container
    assert kernel.state is FixtureState.BOOTED
    assert container.get_parameter("kernel.test_case") == "Basic"
    assert container.get_parameter("kernel.config_dir") == str(config_dir.resolve())
    assert container.get_parameter("kernel.cache_dir") == str(kernel.cache_dir)
    assert container.get_parameter("locale") == "en"
    assert container.extensions["framework"] == {"test": True}
    assert container.get("kernel") is kernel


# ----------------------------------------------------------------
# Serialization
# ----------------------------------------------------------------


def test_serialize_restore_keeps_identity(config_dir: Path, tmp_path: Path):
    kernel = TestKernel("staging", False)
    kernel.configure("Basic", config_dir, root_dir=tmp_path / "root")

    restored = TestKernel.restore(kernel.serialize())

    assert restored.snapshot() == kernel.snapshot()
    assert restored.name == kernel.name
    assert restored.environment == "staging"
    assert restored.debug is False
    assert restored.cache_dir == kernel.cache_dir
    assert restored.state is FixtureState.UNBOOTED


def test_snapshot_records_identity_fields(config_dir: Path, kernel_temp_root: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir, unique_token="z")

    snapshot = kernel.snapshot()

    assert snapshot == KernelSnapshot(
        environment="test",
        debug=True,
        test_case="Basic",
        config_dir=str(config_dir.resolve()),
        root_config=str(config_dir.resolve() / "Basic" / "config.yml"),
        root_dir=str(config_dir.resolve()),
        name="FunctionalBasicz",
        temp_root=str(kernel_temp_root.resolve()),
    )


def test_pickle_round_trip_keeps_identity(config_dir: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)

    restored = pickle.loads(pickle.dumps(kernel))

    assert isinstance(restored, TestKernel)
    assert restored.snapshot() == kernel.snapshot()


def test_restore_keeps_temp_root_from_snapshot(
    config_dir: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)
    data = kernel.serialize()

    monkeypatch.setenv("KERNEL_TEMP_DIR", str(tmp_path / "moved"))
    restored = TestKernel.restore(data)

    assert restored.name == kernel.name
    assert restored.temp_dir == kernel.temp_dir


def test_restore_without_temp_root_uses_environment(config_dir: Path, kernel_temp_root: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir, unique_token="old")
    state = kernel.__getstate__()
    del state["temp_root"]

    restored = TestKernel.restore(json.dumps(state).encode("utf-8"))

    assert restored.name == "FunctionalBasicold"
    assert restored.temp_dir == kernel_temp_root.resolve() / "FunctionalBasicold"


def test_restore_fails_if_test_case_disappeared(config_dir: Path):
    kernel = TestKernel()
    kernel.configure("Basic", config_dir)
    data = kernel.serialize()

    (config_dir / "Basic").rename(config_dir / "Gone")

    with pytest.raises(InvalidArgument):
        TestKernel.restore(data)
