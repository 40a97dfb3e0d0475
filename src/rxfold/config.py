"""Configuration management for rxfold.

Handles loading and generating the TOML config file that sets import
defaults: the format hint, dosage placeholders for newly created medicines,
the local user the CLI imports on behalf of, and chain-specific detection
hints.
"""

from __future__ import annotations

import sys
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from rxfold.errors import ConfigurationError
from rxfold.models import DOSAGE_FREQUENCIES, User
from rxfold.sources.base import AUTO, SOURCE_FORMATS, WALGREENS_CONFIG

DEFAULT_CONFIG_PATH = "rxfold.toml"

DEFAULT_CONFIG_TEMPLATE = """\
# rxfold configuration

[import]
# auto | walgreens | cvs | generic
default_format = "auto"
# Reuse the log of an identical fill (same medicine, fill date and Rx #)
# instead of appending a new one on re-import.
dedupe_logs = false

[defaults]
# Dosage for medicines created by an import. Pharmacy exports carry no
# dosing schedule, so these are placeholders to confirm by hand.
dosage_amount = "1 tablet"
dosage_frequency = "as-needed"

[user]
id = "local"
first_name = ""
last_name = ""

[walgreens]
# Pharmacist initials that identify a Walgreens export
operator_initials = ["SMM"]
"""


@dataclass
class ImportSettings:
    """Knobs the importer and reconciler read."""

    default_format: str = AUTO
    dedupe_logs: bool = False
    dosage_amount: str = "1 tablet"
    dosage_frequency: str = "as-needed"
    operator_initials: list[str] = field(
        default_factory=lambda: list(WALGREENS_CONFIG.operator_initials)
    )


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Load configuration from a TOML file.

    Returns a dict with the sections import, defaults, user and walgreens,
    each merged over the defaults. Falls back to defaults if the config file
    doesn't exist.
    """
    path = Path(config_path)
    if not path.exists():
        print(
            f"Warning: Config file '{config_path}' not found, using defaults. "
            f"Run 'python -m rxfold init-config' to generate one.",
            file=sys.stderr,
        )
        return _default_config()

    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e

    config = _default_config()
    for section, values in raw.items():
        if section in config and isinstance(values, dict):
            config[section].update(values)
    return config


def _default_config() -> dict:
    """Return default configuration."""
    return {
        "import": {"default_format": AUTO, "dedupe_logs": False},
        "defaults": {"dosage_amount": "1 tablet", "dosage_frequency": "as-needed"},
        "user": {"id": "local", "first_name": "", "last_name": ""},
        "walgreens": {"operator_initials": list(WALGREENS_CONFIG.operator_initials)},
    }


def get_import_settings(config: dict) -> ImportSettings:
    """Build validated ImportSettings from a loaded config dict."""
    fmt = str(config["import"].get("default_format", AUTO)).lower()
    if fmt != AUTO and fmt not in SOURCE_FORMATS:
        raise ConfigurationError(
            f"import.default_format must be one of auto, {', '.join(SOURCE_FORMATS)}; got {fmt!r}"
        )

    frequency = config["defaults"].get("dosage_frequency", "as-needed")
    if frequency not in DOSAGE_FREQUENCIES:
        raise ConfigurationError(
            f"defaults.dosage_frequency must be one of {', '.join(DOSAGE_FREQUENCIES)}; "
            f"got {frequency!r}"
        )

    initials = config["walgreens"].get("operator_initials", [])
    if not isinstance(initials, list):
        raise ConfigurationError("walgreens.operator_initials must be a list of strings")

    return ImportSettings(
        default_format=fmt,
        dedupe_logs=bool(config["import"].get("dedupe_logs", False)),
        dosage_amount=str(config["defaults"].get("dosage_amount", "1 tablet")),
        dosage_frequency=frequency,
        operator_initials=[str(i) for i in initials],
    )


def get_user(config: dict) -> User:
    """The local user described by the [user] section."""
    section = config["user"]
    return User(
        id=str(section.get("id", "local")),
        first_name=str(section.get("first_name", "")),
        last_name=str(section.get("last_name", "")),
    )


def generate_config(config_path: str = DEFAULT_CONFIG_PATH) -> str:
    """Write the default config file. Returns the path written."""
    Path(config_path).write_text(DEFAULT_CONFIG_TEMPLATE)
    return config_path
