"""Service configuration definition."""

import os
import sys
from pathlib import Path

from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    JsonConfigSettingsSource,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

APP_NAME = "workspace-session-mcp"


def _platform_dir(xdg_var: str, xdg_default: str, windows_var: str) -> Path:
    if sys.platform == "win32":
        return Path(os.environ.get(windows_var) or Path.home() / "AppData" / "Roaming")
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support"
    return Path(os.environ.get(xdg_var) or Path.home() / xdg_default)


def user_config_dir() -> Path:
    """Platform user-config directory (XDG_CONFIG_HOME on Linux)."""
    return _platform_dir("XDG_CONFIG_HOME", ".config", "APPDATA")


def user_data_dir() -> Path:
    """Platform user-data directory (XDG_DATA_HOME on Linux)."""
    return _platform_dir("XDG_DATA_HOME", ".local/share", "LOCALAPPDATA")


def config_file_path() -> Path:
    override = os.environ.get("WSMCP_CONFIG_FILE")
    if override:
        return Path(override).expanduser()
    return user_config_dir() / APP_NAME / "config.json"


class ServiceConfig(BaseSettings):
    """
    Defines the configuration for the MCP server, loaded from environment
    variables, a .env file or the user config file.
    """

    model_config = SettingsConfigDict(extra="ignore")

    # MCP Server transport mechanism. Only "stdio" is served.
    MCP_TRANSPORT: str = "stdio"

    # Workspace root override. The environment wins over the config file.
    WSMCP_WORKSPACE: Path | None = None
    # Parent of <app>/tasks and <app>/memories. Defaults to the platform data dir.
    WSMCP_DATA_DIR: Path | None = None
    # Hidden directory under the workspace root for checkpoints and memos.
    WSMCP_HIDDEN_DIR: str = ".wsmcp"

    # Knowledge tracker: share of a file that must be read before writing.
    WSMCP_READ_THRESHOLD: float = Field(default=99.0, ge=0.0, le=100.0)
    WSMCP_READONLY_ALLOWS_WRITES: bool = False
    # Characters returned by one file read; longer reads stop at a line boundary.
    WSMCP_READ_MAX_CHARS: int = Field(default=16000, gt=0)

    # File lock registry (seconds).
    WSMCP_LOCK_TIMEOUT: float = Field(default=5.0, gt=0.0)
    WSMCP_LOCK_COOLDOWN: float = Field(default=0.5, ge=0.0)

    # Edit pipeline.
    WSMCP_LARGE_FILE_BYTES: int = Field(default=4 * 1024 * 1024, gt=0)
    WSMCP_FUZZY_THRESHOLD: float = Field(default=50.0, ge=0.0, le=100.0)

    # Terminal sessions.
    WSMCP_COMMAND_TIMEOUT: float = Field(default=30.0, gt=0.0)
    WSMCP_INTERACTIVE_SETTLE: float = Field(default=0.5, gt=0.0)
    WSMCP_OUTPUT_TAIL_CHARS: int = Field(default=20000, gt=0)
    WSMCP_SHELL: str = "bash"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # The .env file is loaded into the environment by main.py.
        return (
            init_settings,
            env_settings,
            JsonConfigSettingsSource(settings_cls, json_file=config_file_path()),
        )

    @property
    def app_data_dir(self) -> Path:
        base = self.WSMCP_DATA_DIR.expanduser() if self.WSMCP_DATA_DIR else user_data_dir()
        return base / APP_NAME

    @property
    def tasks_dir(self) -> Path:
        return self.app_data_dir / "tasks"

    @property
    def memories_dir(self) -> Path:
        return self.app_data_dir / "memories"

    def default_workspace(self) -> Path:
        """Workspace used when initialize is called without a root."""
        if self.WSMCP_WORKSPACE is not None:
            return self.WSMCP_WORKSPACE.expanduser()
        try:
            return Path.cwd()
        except OSError:
            return Path.home()
