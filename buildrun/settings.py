"""
This module contains the configuration settings for buildrun.
It defines paths, the child process command, build watching and logging options.
Every uppercase name is picked up by `buildrun.local.config.MergedSettings`.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ('true', '1', 't', 'yes', 'y')


#* --- Core Paths ---
BASE_DIR = pathlib.Path.cwd()
STATE_DIR = BASE_DIR / ".buildrun"
OVERRIDES_JSON_PATH = STATE_DIR / "overrides.json"

#* --- Target Settings ---
# Name, name fragment or filesystem path of the artifact to run.
BUILDRUN_TARGET = os.getenv("BUILDRUN_TARGET", "")
# Extra arguments passed to the child, split like a shell would.
BUILDRUN_ARGS = os.getenv("BUILDRUN_ARGS", "")

#* --- Python Executable Configuration ---
# The interpreter used to run the resolved artifact.
PYTHON_EXECUTABLE = os.getenv("PYTHON_EXECUTABLE", "") or sys.executable

#* --- Build Watching ---
# Quiet period after the last output change before a build counts as finished.
BUILD_SETTLE_SECONDS = float(os.getenv("BUILD_SETTLE_SECONDS", "0.5"))
# The build writes this file into the output directory when it fails.
BUILD_ERROR_MARKER = os.getenv("BUILD_ERROR_MARKER", ".build-error")
# How often the watch loop checks that the observer thread is still alive.
OBSERVER_HEALTH_CHECK_INTERVAL = 5

#* --- Logging ---
VERBOSE_LOGGING = _env_flag("VERBOSE_LOGGING")
LOG_BUFFER_FLUSH_INTERVAL = 10

# Grafana Loki (for observability)
LOKI_ENABLED = _env_flag("LOKI_ENABLED")
LOKI_URL = os.getenv("LOKI_URL", "http://localhost:3100")
LOKI_ORG_ID = os.getenv("LOKI_ORG_ID", "fake")

#* --- MODIFIABLE SETTINGS (Changeable through overrides.json) ---
MODIFIABLE_SETTINGS = {
    "BUILDRUN_TARGET", "BUILDRUN_ARGS", "PYTHON_EXECUTABLE",
    "BUILD_SETTLE_SECONDS", "BUILD_ERROR_MARKER",
    "LOG_BUFFER_FLUSH_INTERVAL", "LOKI_ENABLED", "LOKI_URL", "LOKI_ORG_ID",
}
