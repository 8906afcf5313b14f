"""Tests for environment-driven settings and logging setup."""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import pytest_mock

from segmentation_sdk.config.settings import get_settings
from segmentation_sdk.monitoring.logging import configure_logging


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in (
        "SEGMENTATION_API_KEY",
        "SEGMENTATION_JWT",
        "SEGMENTATION_API_BASE_URL",
        "SEGMENTATION_ASSETS_BASE_URL",
        "SEGMENTATION_API_PROFILE",
        "SEGMENTATION_REQUEST_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = get_settings()

    assert settings.api_key == ""
    assert settings.api_base_url == "https://api.segmentationapi.com"
    assert settings.assets_base_url == "https://assets.segmentationapi.com"
    assert settings.api_profile == "jobs"
    assert settings.request_timeout == 60.0
    assert settings.log_level == "INFO"


def test_settings_read_env_file_without_overriding(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    for name in ("SEGMENTATION_JWT", "SEGMENTATION_REQUEST_TIMEOUT"):
        # registered first so teardown also drops the values loaded from .env
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.setenv("SEGMENTATION_API_KEY", "from-env")
    (tmp_path / ".env").write_text(
        "# local overrides\nSEGMENTATION_API_KEY=from-file\nSEGMENTATION_JWT = file-jwt\nSEGMENTATION_REQUEST_TIMEOUT=5\n",
        encoding="utf-8",
    )

    settings = get_settings()

    assert settings.api_key == "from-env"
    assert settings.jwt == "file-jwt"
    assert settings.request_timeout == 5.0


def test_get_settings_is_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SEGMENTATION_API_PROFILE", "legacy")
    first = get_settings()
    monkeypatch.setenv("SEGMENTATION_API_PROFILE", "jobs")

    assert get_settings() is first
    assert first.api_profile == "legacy"


def test_configure_logging_uses_settings_level(
    monkeypatch: pytest.MonkeyPatch,
    mocker: pytest_mock.MockerFixture,
) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug")
    basic_config = mocker.patch("segmentation_sdk.monitoring.logging.logging.basicConfig")

    configure_logging()

    basic_config.assert_called_once_with(
        level=logging.DEBUG,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
