from __future__ import annotations

import os
import subprocess
from datetime import datetime, timezone
from functools import lru_cache

from ..config import settings


def _resolve_git_sha() -> str:
    sha = os.getenv("GIT_SHA")
    if sha:
        return sha
    try:
        return (
            subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
            .decode("utf-8")
            .strip()
        )
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def _resolve_build_time() -> str:
    return os.getenv("BUILD_TIME", datetime.now(timezone.utc).isoformat())


@lru_cache
def get_version_info() -> dict[str, str]:
    return {
        "gitSha": _resolve_git_sha(),
        "buildTime": _resolve_build_time(),
        "env": settings.app_env,
    }
