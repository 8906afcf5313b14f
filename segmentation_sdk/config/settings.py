"""Client configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

DEFAULT_API_BASE_URL = "https://api.segmentationapi.com"
DEFAULT_ASSETS_BASE_URL = "https://assets.segmentationapi.com"


def _load_env_file(path: str = ".env") -> None:
    """Populate os.environ from the provided .env file if it exists."""

    env_path = Path(path)
    if not env_path.exists():
        return

    for line in env_path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        os.environ.setdefault(key.strip(), value.strip())


@dataclass(frozen=True, slots=True)
class SegmentationSettings:
    """Credentials, endpoints and transport knobs for ``SegmentationClient``."""

    api_key: str = ""
    jwt: str = ""
    api_base_url: str = DEFAULT_API_BASE_URL
    assets_base_url: str = DEFAULT_ASSETS_BASE_URL
    api_profile: str = "jobs"
    request_timeout: float = 60.0
    log_level: str = "INFO"


def _build_settings() -> SegmentationSettings:
    _load_env_file()

    return SegmentationSettings(
        api_key=os.getenv("SEGMENTATION_API_KEY", ""),
        jwt=os.getenv("SEGMENTATION_JWT", ""),
        api_base_url=os.getenv("SEGMENTATION_API_BASE_URL", DEFAULT_API_BASE_URL),
        assets_base_url=os.getenv("SEGMENTATION_ASSETS_BASE_URL", DEFAULT_ASSETS_BASE_URL),
        api_profile=os.getenv("SEGMENTATION_API_PROFILE", "jobs"),
        request_timeout=float(os.getenv("SEGMENTATION_REQUEST_TIMEOUT", "60")),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )


@lru_cache(maxsize=1)
def get_settings() -> SegmentationSettings:
    """Return cached settings instance."""

    return _build_settings()
