"""
Codepencil Configuration Service - Manages settings from codepencil_config.json.

This module handles loading, creating, and accessing the codepencil_config.json
file which controls canvas defaults, project storage and the execution kernel.

On first use, if codepencil_config.json doesn't exist, it creates one with
sensible defaults. Users can modify this file to customize their setup.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Any

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "codepencil_config.json"

# Default configuration - used when creating new config file
DEFAULT_CONFIG = {
    "canvas": {
        "width": 800,
        "stroke_width": 4,
        "comment": "Canvas width used when the client does not report one, and the default pen width"
    },
    "storage": {
        "live_handle": True,
        "projects_root": "projects",
        "archive_filename": "codepencil-project.zip",
        "comment": "live_handle=false forces every save/open through the zip archive"
    },
    "kernel": {
        "startup_timeout": 10,
        "request_timeout": 30,
        "comment": "Seconds. A request that outlives request_timeout is answered with a timeout error"
    },
    "autosave": {
        "path": "codepencil_notebook.json"
    }
}


@dataclass
class CodepencilConfig:
    """Parsed codepencil configuration."""
    # Canvas
    canvas_width: float = 800
    stroke_width: float = 4

    # Project storage
    live_handle: bool = True
    projects_root: Path = Path("projects")
    archive_filename: str = "codepencil-project.zip"

    # Execution kernel
    startup_timeout: float = 10
    request_timeout: float = 30

    # Notebook autosave
    autosave_path: Path = Path("codepencil_notebook.json")

    # Raw config for reference
    raw_config: Dict[str, Any] = field(default_factory=dict)


# Module-level cached config
_config: Optional[CodepencilConfig] = None
_config_path: Optional[Path] = None


def _number(value: Any, default: float) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0:
        return value
    return default


def _parse_config(raw: Dict[str, Any]) -> CodepencilConfig:
    """Parse raw JSON config into CodepencilConfig."""
    config = CodepencilConfig(raw_config=raw)

    canvas = raw.get("canvas", {})
    config.canvas_width = _number(canvas.get("width"), config.canvas_width)
    config.stroke_width = _number(canvas.get("stroke_width"), config.stroke_width)

    storage = raw.get("storage", {})
    config.live_handle = bool(storage.get("live_handle", True))
    config.projects_root = Path(storage.get("projects_root") or config.projects_root)
    config.archive_filename = storage.get("archive_filename") or config.archive_filename

    kernel = raw.get("kernel", {})
    config.startup_timeout = _number(kernel.get("startup_timeout"), config.startup_timeout)
    config.request_timeout = _number(kernel.get("request_timeout"), config.request_timeout)

    autosave = raw.get("autosave", {})
    config.autosave_path = Path(autosave.get("path") or config.autosave_path)

    return config


def _create_default_config(config_path: Path) -> Dict[str, Any]:
    """Create default config file and return the config dict."""
    logger.info(f"Creating default {CONFIG_FILENAME} at {config_path}")

    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(DEFAULT_CONFIG, f, indent=2)

    return DEFAULT_CONFIG


def load_config(config_path: Optional[Path] = None, force_reload: bool = False) -> CodepencilConfig:
    """
    Load codepencil configuration from JSON file.

    Creates default config if file doesn't exist.

    Args:
        config_path: Path to config file. Defaults to ./codepencil_config.json
        force_reload: If True, reload from disk even if cached

    Returns:
        Parsed CodepencilConfig
    """
    global _config, _config_path

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    # Return cached if available and path matches
    if _config is not None and not force_reload and _config_path == config_path:
        return _config

    _config_path = config_path

    if not config_path.exists():
        try:
            raw = _create_default_config(config_path)
        except OSError as e:
            logger.error(f"Failed to create {CONFIG_FILENAME}: {e}")
            raw = DEFAULT_CONFIG
    else:
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            logger.info(f"Loaded {CONFIG_FILENAME} from {config_path}")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse {CONFIG_FILENAME}: {e}")
            raw = DEFAULT_CONFIG
        except Exception as e:
            logger.error(f"Failed to load {CONFIG_FILENAME}: {e}")
            raw = DEFAULT_CONFIG

    if not isinstance(raw, dict):
        logger.error(f"{CONFIG_FILENAME} is not a JSON object, using defaults")
        raw = DEFAULT_CONFIG

    _config = _parse_config(raw)
    return _config


def get_config() -> CodepencilConfig:
    """Get the current config, loading if necessary."""
    if _config is None:
        return load_config()
    return _config


def reset_config_cache() -> None:
    """Reset cached config (useful for testing)."""
    global _config, _config_path
    _config = None
    _config_path = None


def print_config_status(config: CodepencilConfig) -> None:
    """Print config status for startup logging."""
    storage = "directory + zip" if config.live_handle else "zip only"
    print(f"   Config: {CONFIG_FILENAME}")
    print(f"      Canvas width:   {config.canvas_width}")
    print(f"      Stroke width:   {config.stroke_width}")
    print(f"      Storage:        {storage} (projects under {config.projects_root}/)")
    print(f"      Kernel timeout: {config.request_timeout}s")
    print(f"      Autosave:       {config.autosave_path}")
