from __future__ import annotations

import os
from functools import lru_cache
from importlib import metadata

DISTRIBUTION_NAME = "rwportal"


def _resolve_version() -> str:
    try:
        return metadata.version(DISTRIBUTION_NAME)
    except metadata.PackageNotFoundError:
        return "0.0.0+local"


def _resolve_env() -> str:
    return os.getenv("APP_ENV", os.getenv("ENV", "unknown"))


@lru_cache
def get_version_info() -> dict[str, str]:
    return {
        "version": _resolve_version(),
        "env": _resolve_env(),
    }
