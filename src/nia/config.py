"""Configuration management module"""
import os
from pathlib import Path
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    SettingsConfigDict,
    PydanticBaseSettingsSource,
    TomlConfigSettingsSource,
)

DEFAULT_CONFIG = """# Nia store configuration
database_name = "nia.db"
busy_timeout = 5.0
logging_level = "INFO"
"""


def get_home_path() -> Path:
    """Get the Nia home directory from NIA_HOME or default to ~/.nia"""
    home = os.environ.get("NIA_HOME")
    if home:
        return Path(home).expanduser()
    return Path.home() / ".nia"


def get_config_file(home: Path | None = None) -> Path | None:
    """Get config file path if it exists"""
    config_file = (home or get_home_path()) / "config.toml"
    if config_file.exists():
        return config_file
    return None


class Settings(BaseSettings):
    """Store configuration settings"""

    home: Path = Field(default_factory=get_home_path)

    # Database configuration
    database_name: str = "nia.db"
    busy_timeout: float = 5.0  # seconds to wait for a locked database

    # Logging configuration
    logging_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="NIA_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def database_path(self) -> Path:
        return self.home / self.database_name

    @property
    def logs_dir(self) -> Path:
        return self.home / "logs"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize settings sources to include the home config.toml"""
        home = init_settings().get("home")
        config_file = get_config_file(Path(home) if home else None)
        if config_file:
            toml_settings = TomlConfigSettingsSource(
                settings_cls, toml_file=config_file
            )
            return (
                init_settings,
                env_settings,
                dotenv_settings,
                toml_settings,
                file_secret_settings,
            )
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


def load_settings(home: Path | str | None = None) -> Settings:
    """Load settings, optionally for an explicit home directory

    An explicit home wins over NIA_HOME and is also where config.toml
    is looked up.
    """
    if home is None:
        return Settings()
    return Settings(home=Path(home).expanduser().resolve())
