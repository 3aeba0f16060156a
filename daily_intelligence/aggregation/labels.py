"""Display vocabularies: group taxonomy, source names, score bands.

The group taxonomy is fixed by default and can be overridden from a
JSON or YAML file (``GROUPS_FILE``).
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

GROUP_MAPPING: dict[str, str] = {
    "1": "NHS Contracts",
    "2": "Startup Funding & Grants",
    "3": "HealthTech Media Coverage",
}

# Sector labels in the "health" group contain one of these (lowercased)
HEALTH_MARKERS = ("health", "med")

HIDDEN_TAG_NAME = "not relevant"
COMPLETED_TAG_NAME = "completed"

UNTAGGED_NAME = "Untagged"
UNTAGGED_COLOR = "#94a3b8"


def is_health_sector(label: str) -> bool:
    lowered = label.lower()
    return any(marker in lowered for marker in HEALTH_MARKERS)


def group_display_name(group_id: Optional[str], mapping: Optional[dict[str, str]] = None) -> str:
    if not group_id:
        return "Unknown"
    return (mapping or GROUP_MAPPING).get(group_id, group_id)


def normalize_source_name(source: Optional[str]) -> str:
    """``nhs_supply_chain`` -> ``Nhs Supply Chain``."""
    if not source:
        return "Unknown"
    words = source.replace("_", " ").split(" ")
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


@dataclass(frozen=True)
class ScoreBand:
    label: str
    fill: Optional[str]  # spreadsheet row fill (RGB hex), None = unstyled


IMMEDIATE = ScoreBand("Immediate outreach", "FEE2E2")
HIGH_INTEREST = ScoreBand("High interest", "DCFCE7")
MONITOR = ScoreBand("Monitor", "FEF3C7")
LOW = ScoreBand("Low", None)


def score_band(score: Optional[int]) -> ScoreBand:
    score = score or 0
    if score >= 8:
        return IMMEDIATE
    if score >= 6:
        return HIGH_INTEREST
    if score >= 4:
        return MONITOR
    return LOW


def load_group_mapping(filepath: Optional[str] = None) -> dict[str, str]:
    """Load the group id -> display name taxonomy from file or return defaults.

    Supports JSON and YAML formats.

    Raises:
        FileNotFoundError: If filepath provided but doesn't exist
        ValueError: If the file format is unsupported or not a mapping
    """
    if not filepath:
        return dict(GROUP_MAPPING)

    path = Path(filepath)
    if not path.exists():
        raise FileNotFoundError(f"Groups file not found: {filepath}")

    if path.suffix == ".json":
        with open(path, "r") as f:
            data = json.load(f)
    elif path.suffix in [".yaml", ".yml"]:
        with open(path, "r") as f:
            data = yaml.safe_load(f)
    else:
        raise ValueError(f"Unsupported file format: {path.suffix}. Use .json, .yaml, or .yml")

    if not isinstance(data, dict):
        raise ValueError(f"Groups file must contain a mapping, got {type(data).__name__}")
    return {str(k): str(v) for k, v in data.items()}
