"""YAML handling for shipped and user-supplied configs.

Provides:
    - load_yaml(): safe YAML load with path checks
    - dump_yaml(): plain YAML dump for exporting the active settings

All paths use pathlib.Path for cross-platform compatibility.

Usage:
    from chaos_game.utils import fs
    raw = fs.load_yaml(fs.CONFIG_DIR / "settings.default.yaml")
"""

from pathlib import Path
from typing import Any, Dict, Union

import yaml

# Directory holding the YAML files shipped with the package
CONFIG_DIR = Path(__file__).resolve().parent.parent / "configs"


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load YAML file safely.

    Parameters
    ----------
    path : Union[str, Path]
        YAML file path

    Returns
    -------
    Dict[str, Any]
        Parsed YAML content ({} for an empty file)

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails

    Notes
    -----
    Uses safe_load to prevent arbitrary code execution.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e

    return data if data is not None else {}


def dump_yaml(obj: Dict[str, Any], path: Union[str, Path]) -> None:
    """Write a mapping to YAML, creating parent directories as needed."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        yaml.safe_dump(obj, f, default_flow_style=False, sort_keys=False)
