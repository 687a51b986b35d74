"""Configuration management using Pydantic settings with optional file persistence."""

import json
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

# --- Paths ---

APP_NAME = "swift-package-size"


def get_config_dir() -> Path:
    """Get the configuration directory (e.g. ~/.config/swift-package-size)."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home() / ".config")).expanduser()
    else:
        base = Path("~/.config").expanduser()

    path = base / APP_NAME
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_default_results_dir() -> Path:
    """Get the default directory for saved measurement results."""
    base = Path("~/Documents").expanduser()
    if not base.exists():
        base = Path.home()

    path = base / "swift-package-size-results"
    return path


CONFIG_FILE = get_config_dir() / "config.json"


def load_config_file() -> dict[str, Any]:
    """Load settings from the JSON config file if it exists."""
    if not CONFIG_FILE.exists():
        return {}

    try:
        text = CONFIG_FILE.read_text(encoding="utf-8")
        if not text.strip():
            return {}
        return json.loads(text)
    except (OSError, json.JSONDecodeError):
        return {}


def save_config_file(config_data: dict[str, Any]) -> None:
    """Save settings to the JSON config file."""
    CONFIG_FILE.parent.mkdir(parents=True, exist_ok=True)
    CONFIG_FILE.write_text(json.dumps(config_data, indent=2), encoding="utf-8")


# Reference application that every measurement is built against
DEFAULT_TEMPLATE_REPOSITORY = "https://github.com/marinofelipe/swift-package-info"
DEFAULT_TEMPLATE_APP_NAME = "MeasurementApp"


class _Section(BaseSettings):
    """Settings section where environment variables win over values from the config file."""

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return env_settings, init_settings, dotenv_settings, file_secret_settings


class TemplateSettings(_Section):
    """Reference application (empty app) configuration."""

    model_config = SettingsConfigDict(env_prefix="SPS_TEMPLATE_")

    repository_url: str = Field(default=DEFAULT_TEMPLATE_REPOSITORY)
    revision: str = Field(default="main", description="Branch or tag to check out")
    app_name: str = Field(default=DEFAULT_TEMPLATE_APP_NAME, description="Xcode scheme and product name")
    project_file: Optional[str] = Field(default=None, description="Defaults to <app_name>.xcodeproj")

    def get_project_file(self) -> str:
        return self.project_file or f"{self.app_name}.xcodeproj"


class BuildSettings(_Section):
    """Archive build configuration."""

    model_config = SettingsConfigDict(env_prefix="SPS_BUILD_")

    xcodebuild: str = Field(default="xcodebuild", description="xcodebuild executable")
    configuration: str = Field(default="Release")
    arch: str = Field(default="arm64")
    timeout: Optional[float] = Field(default=None, description="Per-archive timeout in seconds (none = wait forever)")
    extra_settings: dict[str, str] = Field(default_factory=dict, description="Additional KEY=VALUE build settings")


class WorkspaceSettings(_Section):
    """Where measurements run and results are stored."""

    model_config = SettingsConfigDict(env_prefix="SPS_WORKSPACE_")

    work_dir: Optional[str] = Field(default=None, description="Parent for working directories (default: system temp)")
    git: str = Field(default="git", description="git executable")
    clone_timeout: float = Field(default=300.0, description="Timeout for cloning the reference app in seconds")
    results_dir: Optional[str] = Field(default=None, description="Directory to save JSON results")


class LoggingSettings(_Section):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="SPS_LOGGING_")

    level: str = Field(default="WARNING")
    json_output: bool = Field(default=False, description="Render structured logs as JSON")


class AppSettings(BaseSettings):
    """Root application settings.

    Priority: Environment Variables > Config File > Defaults
    """

    model_config = SettingsConfigDict(env_prefix="SPS_", extra="ignore")

    template: TemplateSettings = Field(default_factory=TemplateSettings)
    build: BuildSettings = Field(default_factory=BuildSettings)
    workspace: WorkspaceSettings = Field(default_factory=WorkspaceSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def save(self) -> Path:
        """Save current configuration to file."""
        data = self.model_dump(mode="json", exclude_none=True)
        save_config_file(data)
        return CONFIG_FILE

    def get_work_dir(self) -> Path | None:
        """Get the parent directory for working environments, creating if needed."""
        if not self.workspace.work_dir:
            return None
        path = Path(self.workspace.work_dir).expanduser()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def get_results_dir(self) -> Path:
        """Get the results directory, creating if needed."""
        if self.workspace.results_dir:
            path = Path(self.workspace.results_dir).expanduser()
        else:
            path = get_default_results_dir()
        path.mkdir(parents=True, exist_ok=True)
        return path


def _load_settings() -> AppSettings:
    """Load settings with file config as base, env vars overlay."""
    file_data = load_config_file()
    # Sections are built one by one so their env vars overlay the file values
    return AppSettings(
        template=TemplateSettings(**file_data.get("template", {})),
        build=BuildSettings(**file_data.get("build", {})),
        workspace=WorkspaceSettings(**file_data.get("workspace", {})),
        logging=LoggingSettings(**file_data.get("logging", {})),
    )


settings = _load_settings()
