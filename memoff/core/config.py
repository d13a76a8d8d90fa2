"""
Configuration for the memoff server.

Uses Pydantic v2 for validation and immutable config objects.

Configuration Hierarchy (highest priority first):
1. CLI arguments (passed to load_config)
2. Environment variables (MEM_*)
3. YAML configuration file (memoff.yaml)
4. Pydantic field defaults
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

from memoff.core.library import LibraryRegistry, PathResolver, parse_libraries

DEFAULT_MEM_PATH = Path("~/mcp-server-memories-off.yaml")
CONFIG_FILENAMES = ["memoff.yaml", "memoff.yml"]

# Environment variable suffix -> config field
ENV_FIELDS = {
    "NAME": "name",
    "PATH": "mem_path",
    "LOG_DIR": "log_dir",
    "LOG_LEVEL": "log_level",
    "VERSION": "version",
    "LIBRARIES": "libraries",
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ServerConfig(BaseModel):
    """Server settings shared by the graph (v1) and library (v2) servers."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="memory", description="MCP server name")
    version: int = Field(default=2, description="1 = YAML graph server, 2 = Markdown library server")
    mem_path: Path = Field(default=DEFAULT_MEM_PATH, validate_default=True, description="YAML graph file (v1)")
    log_dir: Optional[Path] = Field(default=None, description="Directory for log files")
    log_level: str = Field(default="INFO", description="Logging level")
    libraries: Dict[str, Path] = Field(default_factory=dict, description="Library name -> root (v2)")

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v not in (1, 2):
            raise ValueError(f"version must be 1 or 2, got {v}")
        return v

    @field_validator("mem_path")
    @classmethod
    def expand_mem_path(cls, v: Path) -> Path:
        return Path(v).expanduser()

    @field_validator("log_dir", mode="before")
    @classmethod
    def expand_log_dir(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        return Path(v).expanduser()

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: Any) -> str:
        level = str(v).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {v!r}")
        return level

    @field_validator("libraries", mode="before")
    @classmethod
    def parse_library_spec(cls, v: Any) -> Dict[str, Path]:
        return parse_libraries(v)

    def registry(self) -> LibraryRegistry:
        """Build the library registry for this configuration."""
        return LibraryRegistry(self.libraries)

    def resolver(self) -> PathResolver:
        return PathResolver(self.registry())


def load_config(
    path: Optional[Path] = None,
    env_prefix: str = "MEM_",
    cli_overrides: Optional[Dict[str, Any]] = None,
    use_env: bool = True,
) -> ServerConfig:
    """Load configuration with hierarchy: defaults → YAML → env vars → CLI args.

    Args:
        path: Optional explicit path to YAML config file
        env_prefix: Prefix for environment variables (default: "MEM_")
        cli_overrides: Optional dictionary of CLI argument overrides;
            None values are ignored
        use_env: Whether to load environment variables (default: True)

    Returns:
        Merged ServerConfig

    Examples:
        # Environment variable: MEM_LIBRARIES=work:~/kb/work
        config = load_config()
        config.libraries  # {"work": Path("/home/me/kb/work")}
    """
    yaml_path = _find_config_file(path)
    if yaml_path:
        with open(yaml_path, encoding="utf-8") as f:
            config_dict = yaml.safe_load(f) or {}
    else:
        config_dict = {}

    if use_env:
        config_dict.update(_extract_env_config(env_prefix))

    if cli_overrides:
        config_dict.update({k: v for k, v in cli_overrides.items() if v is not None})

    return ServerConfig(**config_dict)


def _find_config_file(path: Optional[Path] = None) -> Optional[Path]:
    """Find configuration file.

    Searches in this order:
    1. Provided path
    2. ./memoff.yaml
    3. ./memoff.yml
    """
    if path and Path(path).exists():
        return Path(path)

    for filename in CONFIG_FILENAMES:
        config_path = Path(filename)
        if config_path.exists():
            return config_path

    return None


def _extract_env_config(prefix: str = "MEM_") -> Dict[str, Any]:
    """Extract configuration from environment variables.

    - MEM_LIBRARIES=work:/kb/work,home:/kb/home → {"libraries": "work:/kb/work,home:/kb/home"}
    - MEM_VERSION=1 → {"version": "1"}

    Values stay strings; the model validators convert them. Empty values
    are skipped.
    """
    config: Dict[str, Any] = {}
    for suffix, field in ENV_FIELDS.items():
        value = os.environ.get(f"{prefix}{suffix}")
        if value:
            config[field] = value
    return config


__all__ = ["ServerConfig", "load_config", "DEFAULT_MEM_PATH"]
