"""
Shared pytest fixtures for Stratum tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import os as _os
import pathlib as _pathlib
import typing as _typing
import unittest.mock as _mock

import pytest as _pytest

import stratum.config as config
import stratum.controllers as controllers
import stratum.core as core
import stratum.model as model

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "STRATUM_DATA_PATH",
    "STRATUM_APP_DEFAULTS",
    "STRATUM_LOCAL_CONFIG_NAME",
    "STRATUM_LOG_LEVEL",
    "STRATUM_ENV_FILE",
]

STUDENT_DEFAULTS: dict[str, _typing.Any] = {
    "default": {"course": "Unset", "school": "Springfield"},
    "sections": {
        "account": {
            "name": {"account_exclusive": True},
            "provider": {"account_exclusive": True},
        },
        "student": {
            "student_name": {"desc": "Full name of the student"},
            "course": {"desc": "Course followed"},
        },
        "credentials": {
            "token": {"account_exclusive": True},
            "school_id": {"readonly": True},
        },
    },
    "setup": {"steps": {"student": {"desc": "Student details"}}},
}


# =============================================================================
# Environment
# =============================================================================


@_pytest.fixture
def clean_env() -> dict[str, str]:
    """
    Return environment dict with Stratum keys removed.

    Use with mock.patch.dict to isolate tests from the actual environment.
    """
    return {k: v for k, v in _os.environ.items() if k not in ENV_KEYS_TO_CLEAR}


@_pytest.fixture
def isolated_env(clean_env: dict[str, str]) -> _typing.Any:
    """
    Context manager that isolates tests from environment variables.

    Usage:
        def test_something(isolated_env):
            with isolated_env:
                settings = config.Settings.construct_without_dotenv()
    """
    return _mock.patch.dict(_os.environ, clean_env, clear=True)


@_pytest.fixture
def data_path(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """Empty data directory for local config and account files."""
    path = tmp_path / "stratum"
    path.mkdir()
    return path


@_pytest.fixture
def settings(isolated_env: _typing.Any, data_path: _pathlib.Path) -> config.Settings:
    """Settings isolated from the environment, pointing at a temp data path."""
    with isolated_env:
        return config.Settings.construct_without_dotenv(data_path=data_path)


@_pytest.fixture
def student_defaults() -> config.AppDefaults:
    """Application defaults with the student schema."""
    return config.AppDefaults.from_dict(STUDENT_DEFAULTS)


@_pytest.fixture
def student_config(
    settings: config.Settings,
    student_defaults: config.AppDefaults,
) -> config.Config:
    return config.Config(settings, defaults=student_defaults)


@_pytest.fixture
def student_account(
    settings: config.Settings,
    student_defaults: config.AppDefaults,
) -> config.Account:
    return config.Account(settings, defaults=student_defaults)


# =============================================================================
# Dispatch
# =============================================================================


@_pytest.fixture
def mock_controller() -> controllers.MockController:
    return controllers.MockController()


@_pytest.fixture
def student_registry() -> model.SchemaRegistry:
    """Registry declaring a student type with generic controller operations."""
    registry = model.SchemaRegistry()
    with registry.define("student") as student:
        student.handle_all(
            create=model.USE_CONTROLLER,
            query=model.USE_CONTROLLER,
            get=model.USE_CONTROLLER,
            update=model.USE_CONTROLLER,
            delete=model.USE_CONTROLLER,
        )
        student.needs_data("student_name", operations="create")
        student.optional().needs_data("course", operations="create")
        student.attr_mapping("student_name", "name")
        student.attr_mapping("course", "training")
        student.soft_delete("status", "active")
    return registry


@_pytest.fixture
def dispatcher(
    student_registry: model.SchemaRegistry,
    student_config: config.Config,
    mock_controller: controllers.MockController,
) -> core.Dispatcher:
    return core.Dispatcher(student_registry, student_config, mock_controller)
