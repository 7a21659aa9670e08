"""Reader and writer configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping

import yaml

from pkgtree.errors import ConfigurationError
from pkgtree.ignore.matcher import DEFAULT_IGNORE_FILE_NAME

DEFAULT_MATCH: List[str] = ["*.yaml", "*.yml"]
JSON_MATCH: List[str] = ["*.json"]
MATCH_ALL: List[str] = DEFAULT_MATCH + JSON_MATCH

# Keys accepted in a YAML config file, mapped to dataclass field names.
_CONFIG_KEYS = {
    "path": "package_path",
    "packageFileName": "package_file_name",
    "matchFilesGlob": "match_files_glob",
    "includeSubpackages": "include_subpackages",
    "errorIfNonResources": "error_if_non_resources",
    "omitReaderAnnotations": "omit_reader_annotations",
    "setAnnotations": "set_annotations",
    "ignoreFileName": "ignore_file_name",
    "noDeleteFiles": "no_delete_files",
    "keepReaderAnnotations": "keep_reader_annotations",
}


@dataclass(slots=True)
class ReaderConfig:
    package_path: Path | str = ""
    package_file_name: str = ""
    match_files_glob: List[str] = field(default_factory=list)
    include_subpackages: bool = False
    error_if_non_resources: bool = False
    omit_reader_annotations: bool = False
    set_annotations: Dict[str, str] = field(default_factory=dict)
    ignore_file_name: str = DEFAULT_IGNORE_FILE_NAME

    def __post_init__(self) -> None:
        if not self.match_files_glob:
            self.match_files_glob = list(DEFAULT_MATCH)

    def resolve_package_path(self, base_dir: Path | None = None) -> Path:
        if not self.package_path:
            raise ConfigurationError("must specify package path")
        path = Path(self.package_path)
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        return Path(os.path.abspath(path))


@dataclass(slots=True)
class ReadWriterConfig(ReaderConfig):
    no_delete_files: bool = False
    keep_reader_annotations: bool = False

    def reader_config(self) -> ReaderConfig:
        return ReaderConfig(
            package_path=self.package_path,
            package_file_name=self.package_file_name,
            match_files_glob=list(self.match_files_glob),
            include_subpackages=self.include_subpackages,
            error_if_non_resources=self.error_if_non_resources,
            omit_reader_annotations=self.omit_reader_annotations,
            set_annotations=dict(self.set_annotations),
            ignore_file_name=self.ignore_file_name,
        )


def config_from_mapping(data: Mapping[str, Any]) -> ReadWriterConfig:
    """Build a config from camelCase keys as found in config files."""
    names = {f.name for f in fields(ReadWriterConfig)}
    kwargs: Dict[str, Any] = {}
    for key, value in data.items():
        name = _CONFIG_KEYS.get(key, key if key in names else None)
        if name is None:
            raise ConfigurationError(f"unknown configuration key: {key}")
        kwargs[name] = value
    if not isinstance(kwargs.get("match_files_glob", []), list):
        raise ConfigurationError("matchFilesGlob must be a list of patterns")
    if not isinstance(kwargs.get("set_annotations", {}), dict):
        raise ConfigurationError("setAnnotations must be a mapping")
    kwargs["set_annotations"] = {
        str(k): str(v) for k, v in kwargs.get("set_annotations", {}).items()
    }
    return ReadWriterConfig(**kwargs)


def load_config(config_path: Path) -> ReadWriterConfig:
    """Load a YAML config file; a relative ``path`` resolves against its directory."""
    try:
        data = yaml.safe_load(Path(config_path).read_text(encoding="utf-8")) or {}
    except OSError as exc:
        raise ConfigurationError(f"cannot read config file {config_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid config file {config_path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {config_path} must hold a mapping")

    config = config_from_mapping(data)
    if config.package_path:
        config.package_path = config.resolve_package_path(Path(config_path).parent)
    return config
