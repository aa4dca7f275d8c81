"""Build metadata reported by the health endpoints.

APP_VERSION comes from the APP_VERSION env var (set in CI), falling back to
the installed distribution version. GIT_COMMIT comes from GIT_COMMIT or,
for local checkouts, from git itself.
"""

import os
import subprocess
from importlib.metadata import PackageNotFoundError, version

_DISTRIBUTION = "buzzer-server"


def _installed_version() -> str:
    try:
        return version(_DISTRIBUTION)
    except PackageNotFoundError:
        return "dev"


def _git_short_sha() -> str:
    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],  # noqa: S607
            text=True,
            stderr=subprocess.DEVNULL,
        ).strip()
    except (FileNotFoundError, subprocess.CalledProcessError):
        return "dev"


APP_VERSION: str = os.environ.get("APP_VERSION") or _installed_version()
GIT_COMMIT: str = os.environ.get("GIT_COMMIT") or _git_short_sha()
