"""Mirror configuration helpers."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

import yaml

from .constants import CONFIG_FILE, DEFAULT_EXCLUDED_DESTINATION_PATHS
from .errors import InvalidConfigError


@dataclass
class MirrorConfig:
    """Settings for a mirror run, all optional until merged with CLI flags."""

    source: Optional[Path] = None
    destinations: List[Path] = field(default_factory=list)
    exclude: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDED_DESTINATION_PATHS))
    files_from: Optional[Path] = None


def _string_list(data: dict, key: str, cfg_path: Path) -> Optional[List[str]]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise InvalidConfigError(str(cfg_path), f"'{key}' must be a string or a list of strings")
    return value


def load_mirror_config(root: Path, config_path: Optional[Path] = None) -> MirrorConfig:
    """Load mirror configuration from ``.dirmirror.yaml`` (or *config_path*) if present.

    Relative paths in the file resolve against the file's directory.

    Raises:
        InvalidConfigError: If the file is not valid YAML or has wrong value types
    """
    cfg_path = config_path if config_path is not None else root / CONFIG_FILE
    if not cfg_path.exists():
        if config_path is not None:
            raise InvalidConfigError(str(cfg_path), "file does not exist")
        return MirrorConfig()

    try:
        data = yaml.safe_load(cfg_path.read_text()) or {}
    except yaml.YAMLError as e:
        raise InvalidConfigError(str(cfg_path), str(e)) from e
    if not isinstance(data, dict):
        raise InvalidConfigError(str(cfg_path), "top level must be a mapping")

    base = cfg_path.parent
    config = MirrorConfig()

    source = data.get("source")
    if source is not None:
        if not isinstance(source, str):
            raise InvalidConfigError(str(cfg_path), "'source' must be a string")
        config.source = (base / source).resolve()

    destinations = _string_list(data, "destinations", cfg_path)
    if destinations is not None:
        config.destinations = [(base / d).resolve() for d in destinations]

    exclude = _string_list(data, "exclude", cfg_path)
    if exclude is not None:
        config.exclude = exclude

    files_from = data.get("files_from")
    if files_from is not None:
        if not isinstance(files_from, str):
            raise InvalidConfigError(str(cfg_path), "'files_from' must be a string")
        config.files_from = (base / files_from).resolve()

    return config


def read_files_from(path: Path) -> List[str]:
    """Read a list of relative file paths, one per line.

    Blank lines and lines starting with ``#`` are skipped.
    """
    files = []
    for line in path.read_text().splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            files.append(line)
    return files
