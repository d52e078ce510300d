"""
Settings configuration using pydantic-settings.

These settings configure the library itself (where files live, log level),
not the layered application configuration. They load from:
1. Constructor arguments (highest precedence)
2. Environment variables with STRATUM_ prefix
3. .env file (if STRATUM_ENV_FILE points at one)
4. Field defaults (lowest)

Example:
  STRATUM_DATA_PATH=/srv/stratum
  STRATUM_LOG_LEVEL=DEBUG
"""

import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import stratum.constants as _constants


def _get_env_file() -> str | None:
    """Determine which .env file to load.

    Only an explicit STRATUM_ENV_FILE is honored; a missing file is ignored.
    """
    if env_file := _os.environ.get("STRATUM_ENV_FILE"):
        if _pathlib.Path(env_file).exists():
            return env_file
    return None


class Settings(_pydantic_settings.BaseSettings):
    """
    Stratum library settings.

    All settings can be overridden via environment variables with STRATUM_ prefix.
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="STRATUM_",
        env_file=_get_env_file(),
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    data_path: _pathlib.Path = _pydantic.Field(
        default=_pathlib.Path(_constants.DEFAULT_DATA_DIR),
        description="Directory holding the local config file and account files",
    )

    app_defaults: _pathlib.Path | None = _pydantic.Field(
        default=None,
        description="Application defaults.yaml (key defaults plus metadata sections)",
    )

    local_config_name: str = _pydantic.Field(
        default=_constants.LOCAL_CONFIG_FILE,
        description="File name of the local config layer inside data_path",
    )

    log_level: str = _pydantic.Field(
        default="WARNING",
        description="Log level used by the CLI",
    )

    @_pydantic.field_validator("data_path", "app_defaults", mode="after")
    @classmethod
    def _expand_user(cls, value: _pathlib.Path | None) -> _pathlib.Path | None:
        return value.expanduser() if value is not None else None

    @_pydantic.field_validator("log_level", mode="after")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(_logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @property
    def local_config_path(self) -> _pathlib.Path:
        return self.data_path / self.local_config_name

    @property
    def accounts_dir(self) -> _pathlib.Path:
        return self.data_path / _constants.ACCOUNTS_DIR

    def account_path(self, name: str) -> _pathlib.Path:
        return self.accounts_dir / name

    @classmethod
    def construct_without_dotenv(cls, **kwargs: _typing.Any) -> "Settings":
        """Create Settings from environment variables only, without loading .env file.

        Useful for test isolation.
        """
        return cls(_env_file=None, **kwargs)  # type: ignore[call-arg]
