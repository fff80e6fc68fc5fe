"""Services layer - Business logic for project storage, code execution and config."""

from .codepencil_config import (
    CodepencilConfig,
    load_config,
    get_config,
    reset_config_cache,
    print_config_status,
)

__all__ = [
    "CodepencilConfig",
    "load_config",
    "get_config",
    "reset_config_cache",
    "print_config_status",
]
