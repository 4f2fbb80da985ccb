"""Container detection for startup diagnostics."""

import logging
import os
import re
from typing import Any, Dict

logger = logging.getLogger(__name__)

CONTAINER_ID_PATTERN = re.compile(r"/docker/containers/([a-f0-9]{64})")


def _read(path: str) -> str:
    with open(path, encoding="utf-8") as fh:
        return fh.read()


def get_docker_info() -> Dict[str, Any]:
    """Best-effort detection of whether the server runs inside Docker."""
    info: Dict[str, Any] = {"is_docker": False}

    try:
        if os.path.exists("/.dockerenv"):
            info["is_docker"] = True

        if os.path.exists("/proc/1/cgroup"):
            cgroup = _read("/proc/1/cgroup")
            if "docker" in cgroup or "containerd" in cgroup:
                info["is_docker"] = True

        if os.getpid() == 1:
            info["is_docker"] = True

        if info["is_docker"]:
            info["image_sha"] = os.getenv("IMAGE_SHA") or os.getenv("DOCKER_IMAGE_SHA")
            info["image_id"] = os.getenv("IMAGE_ID") or os.getenv("DOCKER_IMAGE_ID")

            if os.path.exists("/proc/self/mountinfo"):
                match = CONTAINER_ID_PATTERN.search(_read("/proc/self/mountinfo"))
                if match:
                    info["container_id"] = match.group(1)[:12]
    except OSError as exc:
        logger.debug("Docker detection failed: %s", exc)
        info = {"is_docker": False, "detection_error": str(exc)}

    return info
