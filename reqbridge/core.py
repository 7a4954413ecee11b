"""reqbridge core - config loading, .env loading, logging setup."""

import logging
from pathlib import Path

import click
import yaml
from dotenv import dotenv_values

GLOBAL_DIR = Path.home() / ".reqbridge"
GLOBAL_CONFIG = GLOBAL_DIR / "config.yaml"

CWD_CONFIG_CANDIDATES = [
    ".reqbridge.yaml",
    ".reqbridge.yml",
    "reqbridge.yaml",
    "reqbridge.yml",
]

DEFAULTS = {
    "timeout": 30,
    "follow_redirects": True,
    "env_file": ".env",
    "storage_dir": None,
    "log_level": "WARNING",
}

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


def resolve_path(
    candidates: list[Path],
    default: Path | None = None,
) -> Path | None:
    """Return the first existing path from candidates, else default."""
    for p in candidates:
        if p.exists():
            return p.resolve()
    return default


def resolve_config_path(config_file: str | None) -> Path | None:
    """Find the config file to use.

    Resolution order:
      1. Explicit -c flag (no fallthrough if missing)
      2. .reqbridge.yaml (variants) in CWD
      3. ~/.reqbridge/config.yaml
    """
    if config_file:
        return resolve_path([Path(config_file)])
    return resolve_path([Path(c) for c in CWD_CONFIG_CANDIDATES] + [GLOBAL_CONFIG])


def load_config(config_path: str | Path | None) -> dict:
    """Load the YAML config. Missing file means built-in defaults.

    Stores '_config_dir' so relative paths (storage_dir, env_file) resolve
    against the config file's directory.
    """
    defaults = dict(DEFAULTS)
    if config_path is None:
        return {"defaults": defaults, "_config_dir": None}
    path = Path(config_path)
    if not path.exists():
        return {"defaults": defaults, "_config_dir": None}
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    defaults.update(data.get("defaults") or {})
    return {"defaults": defaults, "_config_dir": path.resolve().parent}


def _relative_to_config(value: str, config: dict) -> Path:
    p = Path(value).expanduser()
    config_dir = config.get("_config_dir")
    if not p.is_absolute() and config_dir:
        p = Path(config_dir) / p
    return p


def resolve_storage_dir(cli_override: str | None, config: dict) -> Path:
    """Where collections and environments live.

    Resolution order:
      1. --storage-dir CLI flag (relative to CWD)
      2. storage_dir from config (relative to the config file)
      3. ~/.reqbridge/
    """
    if cli_override:
        return Path(cli_override).expanduser().resolve()
    configured = config.get("defaults", {}).get("storage_dir")
    if configured:
        return _relative_to_config(configured, config)
    return GLOBAL_DIR


def load_dotenv_vars(workspace_dir: str | Path = ".", env_file: str | None = ".env") -> dict[str, str]:
    """Read KEY=value pairs from the workspace .env file.

    Comments and blank lines are ignored, surrounding quotes are stripped,
    keys without a value are dropped. A missing file yields an empty dict.
    Unlike the process environment, nothing is merged in from os.environ.
    """
    if not env_file:
        return {}
    path = Path(env_file)
    if not path.is_absolute():
        path = Path(workspace_dir) / path
    if not path.is_file():
        logger.debug("No .env file at %s", path)
        return {}
    values = {k: v for k, v in dotenv_values(str(path)).items() if v is not None}
    logger.debug("Loaded %d variable(s) from %s", len(values), path)
    return values


def configure_logging(level: str | int | None) -> None:
    """Route library logging to stderr at the requested level."""
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise click.BadParameter(f"Unknown log level: {level}")
        level = numeric
    logging.basicConfig(level=level or logging.WARNING, format=LOG_FORMAT, force=True)
