"""
YAML config file discovery and loading for tiller_sync.

Finds config files by convention, expands ``!include`` directives and
``${VAR}`` references, and merges the files so the most specific one wins.

Usage:
    from tiller_sync.config_loader import load_hierarchical_config

    raw = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV = "TILLER_SYNC_CONFIG"
CONFIG_DIR = ".tiller"

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# ${VAR} or ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in ``value``.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none. An unterminated ``${`` is left as is.
    """

    def _replace(match: re.Match) -> str:
        env_val = os.environ.get(match.group(1))
        if env_val:
            return env_val
        return match.group(2) or ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """``SafeLoader`` that understands ``!include other.yml``.

    A subclass keeps the global ``yaml.SafeLoader`` untouched. Each load
    carries the chain of files being included so cycles are reported
    instead of recursing forever.
    """


def _include_constructor(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = Path(loader.name).resolve().parent / target
    target = target.resolve()

    chain: list[Path] = getattr(loader, "_include_stack", [])
    if target in chain:
        cycle = " -> ".join(str(p) for p in [*chain, target])
        raise ValueError(f"Circular include detected: {cycle}")

    if not target.exists():
        raise FileNotFoundError(
            f"Include file not found: {target} "
            f"(referenced from {Path(loader.name).resolve()})"
        )

    return _load_yaml_with_includes(target, _include_stack=[*chain, target])


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    path = path.resolve()
    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack or [path]  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config files, most specific first.

    Search order:
        1. ``TILLER_SYNC_CONFIG`` env var (explicit single path)
        2. ``.tiller/config.yml`` in CWD
        3. ``.tiller/config.yaml`` in CWD
        4. ``~/.config/tiller/config.yml``
    """
    candidates: list[Path] = []

    env_path = os.environ.get(CONFIG_ENV)
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / CONFIG_DIR / "config.yml")
    candidates.append(cwd / CONFIG_DIR / "config.yaml")
    candidates.append(Path.home() / ".config" / "tiller" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 3a. Starter config
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# tiller-sync configuration
#
# Every setting can also come from the environment:
#   TILLER_HOME, TILLER_SHEET_URL, TILLER_BACKUP_COPIES, TILLER_TOKEN_PATH
#
# tiller:
#   home: ~/tiller
#   sheet_url: https://docs.google.com/spreadsheets/d/SPREADSHEET_ID
#   backup_copies: 5
#   token_path: .secrets/token.json
#
# logging:
#   level: INFO
"""


def resolve_config_path() -> Path:
    """Path of the config file in effect, or where a new one would go.

    Does not create anything; see ``ensure_config()``.
    """
    existing = discover_config_files()
    if existing:
        return existing[0]
    return Path.cwd() / CONFIG_DIR / "config.yml"


def ensure_config(target: Path | None = None) -> Path:
    """Return the config file in effect, writing a commented starter if none.

    Args:
        target: Where to write the starter file. Defaults to
            ``resolve_config_path()``.

    Returns:
        Path to the existing or newly created file.
    """
    existing = discover_config_files()
    if existing:
        logger.debug("Config file already exists: %s", existing[0])
        return existing[0]

    config_path = target or resolve_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", config_path)
    return config_path


# ---------------------------------------------------------------------------
# 4. Hierarchical merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Load and merge every discovered config file.

    Files are applied from least to most specific; a top-level key in a
    more specific file replaces the whole section from a less specific
    one. ``${VAR}`` references are expanded after merging.

    Returns an empty dict when there are no config files.
    """
    paths = discover_config_files()
    if not paths:
        logger.debug("No config files found, using defaults")
        return {}

    merged: dict[str, Any] = {}
    for path in reversed(paths):
        logger.debug("Loading config: %s", path)
        try:
            data = _load_yaml_with_includes(path)
        except (OSError, ValueError, yaml.YAMLError):
            logger.exception("Failed to load config file %s", path)
            raise

        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Config file %s has non-dict root (%s), skipping",
                path,
                type(data).__name__,
            )

    return _interpolate_recursive(merged)
