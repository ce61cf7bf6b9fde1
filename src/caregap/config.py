"""Configuration management for caregap.

Handles loading and generating TOML config files for care gap rule
thresholds, the observation labels the rules look for, and the seed dataset.
"""

from __future__ import annotations

import sys
import tomllib
from dataclasses import asdict, dataclass, fields
from pathlib import Path

DEFAULT_CONFIG_PATH = "caregap.toml"

DEFAULT_CONFIG_TEMPLATE = """\
# caregap configuration
# Edit freely. Removing a key restores its default.

[care_gaps]
# Observation label (exact match) and staleness threshold in months
# for diabetic A1c monitoring.
a1c_label = "{a1c_label}"
a1c_max_months = {a1c_max_months}

# Blood pressure monitoring for hypertensive patients.
bp_label = "{bp_label}"
bp_max_months = {bp_max_months}

# Screening mammogram for female patients in the age range (inclusive).
mammogram_label = "{mammogram_label}"
mammogram_min_age = {mammogram_min_age}
mammogram_max_age = {mammogram_max_age}

# Encounters whose type contains this keyword count as wellness visits.
awv_keyword = "{awv_keyword}"
awv_max_months = {awv_max_months}

[seed]
# Path to a FHIR-shaped JSON seed dataset. Empty = bundled sample patients.
path = ""
"""


@dataclass
class CareGapConfig:
    """Tunable inputs for the default care gap rules."""

    a1c_label: str = "Hemoglobin A1c"
    a1c_max_months: int = 12
    bp_label: str = "Blood pressure"
    bp_max_months: int = 6
    mammogram_label: str = "Mammogram"
    mammogram_min_age: int = 50
    mammogram_max_age: int = 74
    awv_keyword: str = "annual"
    awv_max_months: int = 12


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> dict:
    """Load configuration from a TOML file.

    Returns a dict with:
    - care_gaps: CareGapConfig instance
    - seed: dict with the seed dataset path ("" = bundled)

    Falls back to defaults if the config file doesn't exist.
    """
    path = Path(config_path)
    if not path.exists():
        print(
            f"Warning: Config file '{config_path}' not found, using defaults. "
            f"Run 'caregap init-config' to generate one.",
            file=sys.stderr,
        )
        return _default_config()

    with open(path, "rb") as f:
        raw = tomllib.load(f)

    config = _default_config()

    if "care_gaps" in raw:
        known = {f.name for f in fields(CareGapConfig)}
        overrides = {k: v for k, v in raw["care_gaps"].items() if k in known}
        config["care_gaps"] = CareGapConfig(**overrides)

    if "seed" in raw:
        config["seed"].update(raw["seed"])

    return config


def _default_config() -> dict:
    """Return default configuration."""
    return {
        "care_gaps": CareGapConfig(),
        "seed": {"path": ""},
    }


def generate_config(config_path: str = DEFAULT_CONFIG_PATH) -> str:
    """Write a config file populated with the default settings.

    Returns the path of the written config file.
    """
    content = DEFAULT_CONFIG_TEMPLATE.format(**asdict(CareGapConfig()))
    Path(config_path).write_text(content)
    return config_path
