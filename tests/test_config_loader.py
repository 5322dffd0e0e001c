"""Tests for tiller_sync.config_loader — YAML discovery, includes and merge."""

import textwrap

import pytest
import yaml

from tiller_sync.config_loader import (
    CONFIG_ENV,
    _interpolate_recursive,
    _load_yaml_with_includes,
    discover_config_files,
    ensure_config,
    interpolate_env_vars,
    load_hierarchical_config,
    resolve_config_path,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Empty CWD and HOME, no explicit config path."""
    monkeypatch.delenv(CONFIG_ENV, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    return tmp_path


def _write(path, text):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(textwrap.dedent(text))
    return path


# -------------------------------------------------------------------------
# Env var interpolation
# -------------------------------------------------------------------------


class TestInterpolateEnvVars:
    def test_set_var(self, monkeypatch):
        monkeypatch.setenv("TILLER_TEST_ID", "abc")
        assert interpolate_env_vars("/d/${TILLER_TEST_ID}/edit") == "/d/abc/edit"

    def test_unset_var_is_empty(self, monkeypatch):
        monkeypatch.delenv("TILLER_TEST_UNSET", raising=False)
        assert interpolate_env_vars("${TILLER_TEST_UNSET}") == ""

    def test_default_for_unset_or_empty(self, monkeypatch):
        monkeypatch.setenv("TILLER_TEST_EMPTY", "")
        assert interpolate_env_vars("${TILLER_TEST_EMPTY:-~/tiller}") == "~/tiller"

    def test_unterminated_left_alone(self):
        assert interpolate_env_vars("${OPEN") == "${OPEN"

    def test_recursive_leaves_non_strings(self, monkeypatch):
        monkeypatch.setenv("TILLER_TEST_HOME", "/data")
        data = {"tiller": {"home": "${TILLER_TEST_HOME}", "backup_copies": 3}, "x": ["${TILLER_TEST_HOME}", 1]}
        assert _interpolate_recursive(data) == {
            "tiller": {"home": "/data", "backup_copies": 3},
            "x": ["/data", 1],
        }


# -------------------------------------------------------------------------
# !include
# -------------------------------------------------------------------------


class TestIncludes:
    def test_relative_include(self, tmp_path):
        _write(tmp_path / "sheet.yml", "sheet_url: https://example.com/d/x\n")
        main = _write(tmp_path / "config.yml", "tiller: !include sheet.yml\n")

        assert _load_yaml_with_includes(main) == {
            "tiller": {"sheet_url": "https://example.com/d/x"}
        }

    def test_missing_include(self, tmp_path):
        main = _write(tmp_path / "config.yml", "tiller: !include gone.yml\n")
        with pytest.raises(FileNotFoundError, match="Include file not found"):
            _load_yaml_with_includes(main)

    def test_cycle_detected(self, tmp_path):
        _write(tmp_path / "a.yml", "x: !include b.yml\n")
        _write(tmp_path / "b.yml", "y: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            _load_yaml_with_includes(tmp_path / "a.yml")

    def test_safe_loader_untouched(self, tmp_path):
        path = _write(tmp_path / "c.yml", "x: !include other.yml\n")
        with pytest.raises(yaml.constructor.ConstructorError):
            yaml.safe_load(path.read_text())


# -------------------------------------------------------------------------
# Discovery and merge
# -------------------------------------------------------------------------


class TestDiscovery:
    def test_nothing_found(self, isolated):
        assert discover_config_files() == []

    def test_order_most_specific_first(self, isolated, monkeypatch):
        explicit = _write(isolated / "explicit.yml", "a: 1\n")
        project = _write(isolated / ".tiller" / "config.yml", "b: 1\n")
        user = _write(isolated / "home" / ".config" / "tiller" / "config.yml", "c: 1\n")
        monkeypatch.setenv(CONFIG_ENV, str(explicit))

        assert discover_config_files() == [explicit.resolve(), project, user]

    def test_yaml_extension(self, isolated):
        project = _write(isolated / ".tiller" / "config.yaml", "a: 1\n")
        assert discover_config_files() == [project]


class TestLoadHierarchicalConfig:
    def test_project_section_replaces_user_section(self, isolated):
        _write(
            isolated / "home" / ".config" / "tiller" / "config.yml",
            """\
            tiller:
              home: /user/tiller
              backup_copies: 9
            logging:
              level: DEBUG
            """,
        )
        _write(
            isolated / ".tiller" / "config.yml",
            """\
            tiller:
              home: /project/tiller
            """,
        )

        result = load_hierarchical_config()

        assert result["tiller"] == {"home": "/project/tiller"}
        assert result["logging"] == {"level": "DEBUG"}

    def test_interpolated_after_merge(self, isolated, monkeypatch):
        monkeypatch.setenv("SHEET_ID", "abc")
        _write(
            isolated / ".tiller" / "config.yml",
            """\
            tiller:
              sheet_url: "https://docs.google.com/spreadsheets/d/${SHEET_ID}"
            """,
        )
        result = load_hierarchical_config()
        assert result["tiller"]["sheet_url"].endswith("/d/abc")

    def test_non_dict_root_skipped(self, isolated):
        _write(isolated / ".tiller" / "config.yml", "- one\n- two\n")
        assert load_hierarchical_config() == {}

    def test_broken_yaml_raises(self, isolated):
        _write(isolated / ".tiller" / "config.yml", "tiller: [unclosed\n")
        with pytest.raises(yaml.YAMLError):
            load_hierarchical_config()


class TestStarterConfig:
    def test_writes_starter_when_missing(self, isolated):
        path = ensure_config()

        assert path == isolated / ".tiller" / "config.yml"
        assert "TILLER_SHEET_URL" in path.read_text()
        # the starter is all comments, so it loads as empty
        assert load_hierarchical_config() == {}

    def test_existing_config_kept(self, isolated):
        existing = _write(isolated / ".tiller" / "config.yml", "tiller: {}\n")
        assert resolve_config_path() == existing
        assert ensure_config() == existing
        assert existing.read_text() == "tiller: {}\n"
