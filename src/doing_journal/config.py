"""Configuration loading for the doing journal.

Supports three tiers:
1. Simple config via .toml or .json - most users
2. Python config via .py - hooks and extra import/export formats
3. Defaults when no config file exists
"""

from __future__ import annotations

import importlib.util
import json
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from .autotag import AutotagRules
from .errors import InvalidArgument

# Python 3.11+ has tomllib in stdlib; fall back to tomli for older versions
try:
    import tomllib  # Python 3.11+
except ImportError:
    try:
        import tomli as tomllib  # Python <3.11
    except ImportError:  # pragma: no cover
        tomllib = None

HOOK_EVENTS = ("post_read", "pre_write", "post_entry_added", "post_entry_updated")

VIEW_KEYS = {
    "section", "count", "tags", "tags_bool", "search", "before", "after", "from",
    "only_timed", "order", "age", "output_format", "title", "case", "not",
}


@dataclass
class DoingConfig:
    """Configuration for one journal file."""

    project_root: Path = field(default_factory=Path.cwd)
    doing_file: str = "doing.md"
    current_section: str = "Currently"

    # Tagging
    default_tags: list[str] = field(default_factory=list)
    marker_tag: str = "flagged"
    autotag: AutotagRules = field(default_factory=AutotagRules)
    auto_tag: bool = True

    search_case: str = "smart"
    backup: bool = True

    # Saved views: name -> option dict
    views: dict[str, dict[str, Any]] = field(default_factory=dict)

    # Populated from Python config
    hooks: dict[str, Callable] = field(default_factory=dict)
    export_plugins: dict[str, Callable] = field(default_factory=dict)
    import_plugins: dict[str, Callable] = field(default_factory=dict)

    def get_doing_path(self) -> Path:
        path = Path(self.doing_file).expanduser()
        if path.is_absolute():
            return path
        return self.project_root / path

    def get_view(self, name: str) -> Optional[dict[str, Any]]:
        return self.views.get(name)

    def list_views(self) -> list[str]:
        return list(self.views.keys())


def load_toml_config(path: Path) -> dict[str, Any]:
    """Load configuration from TOML file."""
    if tomllib is None:
        raise ImportError("tomli required for TOML config: pip install tomli")
    with open(path, "rb") as f:
        return tomllib.load(f)


def load_json_config(path: Path) -> dict[str, Any]:
    """Load configuration from JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def load_python_config(
    path: Path,
) -> tuple[dict[str, Any], dict[str, Callable], dict[str, Callable], dict[str, Callable]]:
    """Load configuration from Python file.

    Returns:
        Tuple of (config_dict, hooks, export_plugins, import_plugins)

    Convention:
        - CONFIG dict or config dict for static configuration
        - Functions named hook_<event> become hooks
        - Functions named export_<format>(items, variables) become exporters
        - Functions named import_<format>(store, path, options) become importers
    """
    spec = importlib.util.spec_from_file_location("doing_config", path)
    if spec is None or spec.loader is None:
        raise ImportError(f"Cannot load Python config from {path}")

    module = importlib.util.module_from_spec(spec)
    sys.modules["doing_config"] = module
    spec.loader.exec_module(module)

    config_dict = {}
    if hasattr(module, "CONFIG"):
        config_dict = module.CONFIG
    elif hasattr(module, "config"):
        config_dict = module.config

    hooks = {}
    exporters = {}
    importers = {}
    for name in dir(module):
        value = getattr(module, name)
        if not callable(value):
            continue
        if name.startswith("hook_"):
            hooks[name[5:]] = value
        elif name.startswith("export_"):
            exporters[name[7:]] = value
        elif name.startswith("import_"):
            importers[name[7:]] = value

    return config_dict, hooks, exporters, importers


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return list(value)


def dict_to_config(data: dict[str, Any], project_root: Path) -> DoingConfig:
    """Convert dictionary to DoingConfig."""
    config = DoingConfig(project_root=project_root)

    if "doing_file" in data:
        config.doing_file = data["doing_file"]
    if "current_section" in data:
        config.current_section = data["current_section"]
    if "default_tags" in data:
        config.default_tags = _as_list(data["default_tags"])
    if "marker_tag" in data:
        config.marker_tag = str(data["marker_tag"]).lstrip("@")
    if "backup" in data:
        config.backup = bool(data["backup"])

    if "autotag" in data:
        autotag_data = data["autotag"] or {}
        config.autotag = AutotagRules.from_dict(autotag_data)
        if "enabled" in autotag_data:
            config.auto_tag = bool(autotag_data["enabled"])

    if "search" in data:
        search = data["search"]
        if "case" in search:
            config.search_case = search["case"]

    if "views" in data:
        for name, view in data["views"].items():
            if not isinstance(view, dict):
                raise InvalidArgument(f"View {name!r} must be a table")
            unknown = set(view) - VIEW_KEYS
            if unknown:
                raise InvalidArgument(f"Unknown keys in view {name!r}: {sorted(unknown)}")
            config.views[name] = dict(view)

    return config


def find_config_file(project_root: Path) -> Optional[Path]:
    """Find configuration file in project root.

    Search order:
    1. doing_config.py (most flexible)
    2. doing_config.toml
    3. doing_config.json
    4. .doing.toml
    5. .doing.json
    """
    candidates = [
        "doing_config.py",
        "doing_config.toml",
        "doing_config.json",
        ".doing.toml",
        ".doing.json",
    ]

    for name in candidates:
        path = project_root / name
        if path.exists():
            return path

    return None


def load_config(project_root: Path, config_path: Optional[Path] = None) -> DoingConfig:
    """Load journal configuration.

    Args:
        project_root: Directory the journal file is relative to
        config_path: Optional explicit path to config file

    Returns:
        DoingConfig instance
    """
    if config_path is None:
        config_path = find_config_file(project_root)

    if config_path is None:
        return DoingConfig(project_root=project_root)

    suffix = config_path.suffix.lower()

    if suffix == ".py":
        config_dict, hooks, exporters, importers = load_python_config(config_path)
        config = dict_to_config(config_dict, project_root)
        config.hooks = {k: v for k, v in hooks.items() if k in HOOK_EVENTS}
        config.export_plugins = exporters
        config.import_plugins = importers
        return config

    elif suffix == ".toml":
        config_dict = load_toml_config(config_path)
        return dict_to_config(config_dict, project_root)

    elif suffix == ".json":
        config_dict = load_json_config(config_path)
        return dict_to_config(config_dict, project_root)

    else:
        raise ValueError(f"Unsupported config file type: {suffix}")
