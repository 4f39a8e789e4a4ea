"""Configuration management for MBForge."""

from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field
from ruamel.yaml import YAML

from .device.tool import DEFAULT_COMPLETION_PHRASES

DEFAULT_CONFIG_PATH = Path.home() / ".config/mbforge/config.yaml"


class ToolConfig(BaseModel):
    """External tool invocation settings."""

    backup_tool: str = Field(default="idevicebackup2", description="Backup transfer tool")
    diagnostics_tool: str = Field(default="idevicediagnostics", description="Diagnostics tool used for reboot")
    udid: Optional[str] = Field(default=None, description="Target device UDID (first device when unset)")
    timeout: Optional[int] = Field(default=None, description="Per-invocation timeout in seconds")
    completion_phrases: List[str] = Field(
        default_factory=lambda: list(DEFAULT_COMPLETION_PHRASES),
        description="Restore stdout phrases that count as success despite a nonzero exit"
    )


class ArchiveConfig(BaseModel):
    """Archive assembly settings."""

    temp_prefix: str = Field(default="restore-", description="Prefix of scratch archive directories")
    temp_root: Optional[Path] = Field(default=None, description="Parent of scratch directories (system temp when unset)")
    lenient_decode: bool = Field(default=False, description="Degrade to partial results on malformed MBDB data")
    crash_reporter_dir: str = Field(default="CrashReporter", description="Directory of the synthetic crash report")


class ForgeConfig(BaseModel):
    """Main configuration for MBForge."""

    config_dir: Path = Field(
        default_factory=lambda: Path.home() / ".config/mbforge",
        description="Configuration directory"
    )
    log_level: str = Field(default="INFO", description="Logging level")
    log_file: Optional[Path] = Field(default=None, description="Optional detailed log file")

    tools: ToolConfig = Field(default_factory=ToolConfig)
    archive: ArchiveConfig = Field(default_factory=ArchiveConfig)

    class Config:
        """Pydantic configuration."""

        validate_assignment = True


def load_config(config_path: Optional[Path] = None) -> ForgeConfig:
    """Load configuration from file, writing the defaults if none exists."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if config_path.exists():
        yaml = YAML(typ="safe")
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.load(f) or {}
        return ForgeConfig(**data)

    config = ForgeConfig()
    save_config(config, config_path)
    return config


def save_config(config: ForgeConfig, config_path: Optional[Path] = None) -> None:
    """Save configuration to file."""

    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    config_path.parent.mkdir(parents=True, exist_ok=True)

    yaml = YAML()
    yaml.default_flow_style = False

    with open(config_path, "w", encoding="utf-8") as f:
        yaml.dump(config.model_dump(mode="json"), f)


def get_config() -> ForgeConfig:
    """Get the global configuration instance."""

    if not hasattr(get_config, "_config"):
        get_config._config = load_config()

    return get_config._config


def set_config(config: ForgeConfig) -> None:
    """Replace the global configuration instance."""
    get_config._config = config
