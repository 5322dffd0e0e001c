"""Configuration for the sync engine and MCP server.

Reads the tiller home, sheet URL and retention settings from CLI args,
environment variables, .env files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TILLER_HOME: Directory holding the datastore, backups and secrets
        (optional, default: ~/tiller)
    TILLER_SHEET_URL: URL of the Tiller Google Sheet (required)
    TILLER_BACKUP_COPIES: Backups retained per kind (optional, default: 5)
    TILLER_TOKEN_PATH: OAuth token file (optional,
        default: $TILLER_HOME/.secrets/token.json)
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlparse

logger = logging.getLogger(__name__)

DEFAULT_HOME = "~/tiller"
DEFAULT_BACKUP_COPIES = 5

SECRETS_DIR = ".secrets"
BACKUPS_DIR = ".backups"
TOKEN_JSON = "token.json"
TILLER_SQLITE = "tiller.sqlite"


@dataclass
class Config:
    home: Path
    sheet_url: str
    backup_copies: int = DEFAULT_BACKUP_COPIES
    token_path: Path | None = None
    debug: bool = False

    def __post_init__(self) -> None:
        self.home = Path(self.home).expanduser()
        if self.token_path is None:
            self.token_path = self.secrets_dir / TOKEN_JSON
        else:
            self.token_path = Path(self.token_path).expanduser()
            if not self.token_path.is_absolute():
                self.token_path = self.home / self.token_path

    @property
    def spreadsheet_id(self) -> str:
        return extract_spreadsheet_id(self.sheet_url)

    @property
    def backups_dir(self) -> Path:
        return self.home / BACKUPS_DIR

    @property
    def secrets_dir(self) -> Path:
        return self.home / SECRETS_DIR

    @property
    def sqlite_path(self) -> Path:
        return self.home / TILLER_SQLITE

    @property
    def lock_path(self) -> Path:
        return self.home / f"{TILLER_SQLITE}.lock"


def extract_spreadsheet_id(url: str) -> str:
    """Return the path segment after ``/d/`` in a Google Sheets URL.

    Query strings and fragments are stripped, so both
    ``.../d/ID/edit#gid=0`` and ``.../d/ID?usp=sharing`` yield ``ID``.

    Raises:
        ValueError: If the URL has no ``/d/<id>`` segment.
    """
    parts = url.split("/")
    for ix, part in enumerate(parts[:-1]):
        if part == "d":
            sheet_id = parts[ix + 1].split("?")[0].split("#")[0]
            if sheet_id:
                return sheet_id
    raise ValueError(
        f"Invalid TILLER_SHEET_URL '{url}': expected "
        "https://docs.google.com/spreadsheets/d/SPREADSHEET_ID"
    )


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the sheet URL is malformed or the retention count is
            out of range.
    """
    config.sheet_url = config.sheet_url.strip()

    if not config.sheet_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid TILLER_SHEET_URL '{config.sheet_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.sheet_url)
    if not parsed.hostname:
        raise ValueError(
            f"Invalid TILLER_SHEET_URL '{config.sheet_url}': URL must include a hostname"
        )

    # raises with the variable name on a bad URL
    extract_spreadsheet_id(config.sheet_url)

    if not (1 <= config.backup_copies <= 100):
        raise ValueError(
            f"Invalid TILLER_BACKUP_COPIES '{config.backup_copies}': must be a number between 1 and 100"
        )

    if config.home.exists() and not config.home.is_dir():
        raise ValueError(
            f"Invalid TILLER_HOME '{config.home}': exists and is not a directory"
        )


def load_config(
    home: str | None = None,
    sheet_url: str | None = None,
    token_path: str | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        home: Override tiller home (takes precedence over env var and YAML).
        sheet_url: Override sheet URL (takes precedence over env var and YAML).
        token_path: Override OAuth token file location.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict of values from YAML config file ``tiller``
            section. Used as fallback when CLI arg and env var are both unset.

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If the sheet URL is missing after checking all sources,
            or any value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- Path and string fields: CLI > env > YAML > default ---

    final_home = home or os.getenv("TILLER_HOME") or fb.get("home") or DEFAULT_HOME

    final_url = sheet_url or os.getenv("TILLER_SHEET_URL") or fb.get("sheet_url")
    if not final_url:
        raise ValueError(
            "Sheet URL not found. Set TILLER_SHEET_URL environment variable, "
            "pass --sheet-url CLI argument, or add 'sheet_url' to config.yml."
        )

    final_token = (
        token_path or os.getenv("TILLER_TOKEN_PATH") or fb.get("token_path")
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if debug:
        final_debug = True
    else:
        env_debug = os.getenv("TILLER_DEBUG")
        if env_debug is not None:
            final_debug = env_debug.lower() in ("true", "1", "yes", "on")
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: env > YAML > default ---

    copies_raw = os.getenv("TILLER_BACKUP_COPIES")
    if copies_raw is not None:
        try:
            final_copies = int(copies_raw)
        except ValueError:
            raise ValueError(
                f"Invalid TILLER_BACKUP_COPIES '{copies_raw}': must be a number between 1 and 100"
            ) from None
    elif "backup_copies" in fb:
        final_copies = int(fb["backup_copies"])
    else:
        final_copies = DEFAULT_BACKUP_COPIES

    config = Config(
        home=Path(final_home),
        sheet_url=final_url,
        backup_copies=final_copies,
        token_path=Path(final_token) if final_token else None,
        debug=final_debug,
    )

    validate_config(config)

    return config


def ensure_home(config: Config) -> None:
    """Create the tiller home with its backups and secrets directories."""
    for path in (config.home, config.backups_dir, config.secrets_dir):
        if not path.is_dir():
            path.mkdir(parents=True, exist_ok=True)
            logger.info("Created directory %s", path)
    os.chmod(config.secrets_dir, 0o700)
