# src/drive_oauth/utils/headless_detection.py

import os
import sys
import logging

lib_logger = logging.getLogger("drive_oauth")

# Common CI indicators; one match is enough
CI_ENV_VARS = (
    "CI",
    "GITHUB_ACTIONS",
    "GITLAB_CI",
    "JENKINS_URL",
    "CIRCLECI",
    "TRAVIS",
    "BUILDKITE",
    "TF_BUILD",
)

CONTAINER_MARKERS = ("/.dockerenv", "/run/.containerenv")


def headless_indicators() -> list:
    """
    Collect the reasons the current environment looks headless (no GUI).

    Detection logic:
    - Linux/Unix: DISPLAY (X11) and WAYLAND_DISPLAY both unset
    - SSH session: SSH_CONNECTION, SSH_CLIENT or SSH_TTY set
    - CI environments: common CI environment variables
    - Containers: /.dockerenv or /run/.containerenv present

    Returns:
        A list of human-readable indicators; empty when a GUI is likely available
    """
    indicators = []

    # macOS and Windows don't use DISPLAY, only check it on Linux
    if os.name != "nt" and sys.platform != "darwin":
        display = os.getenv("DISPLAY", "").strip()
        wayland = os.getenv("WAYLAND_DISPLAY", "").strip()
        if not display and not wayland:
            indicators.append("No DISPLAY variable (Linux headless)")

    if os.getenv("SSH_CONNECTION") or os.getenv("SSH_CLIENT") or os.getenv("SSH_TTY"):
        indicators.append("SSH connection detected")

    for var in CI_ENV_VARS:
        if os.getenv(var):
            indicators.append(f"CI environment detected ({var})")
            break

    if any(os.path.exists(marker) for marker in CONTAINER_MARKERS):
        indicators.append("Container environment detected")

    return indicators


def is_headless_environment() -> bool:
    """
    Detects if the current environment is headless (no GUI available).

    Returns:
        True if headless environment is detected, False otherwise
    """
    indicators = headless_indicators()
    if indicators:
        lib_logger.info(f"Headless environment detected: {'; '.join(indicators)}")
        return True

    lib_logger.debug("GUI environment detected, browser auto-open will be attempted")
    return False
