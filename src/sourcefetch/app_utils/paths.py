"""Filesystem locations used by source-fetch."""

import os
from pathlib import Path

HOME_ENV_VAR = "SOURCEFETCH_HOME"


def get_user_data_dir() -> Path:
    """Directory holding config.yaml (``$SOURCEFETCH_HOME`` or ``~/.sourcefetch``)."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".sourcefetch"


def get_config_file() -> Path:
    return get_user_data_dir() / "config.yaml"
