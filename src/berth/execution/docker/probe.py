"""OS prober — find out which operating system an image targets.

``docker inspect <image>`` prints a JSON array of objects; the first one
carries the image's ``Os`` field (``linux``, ``windows``, ...). The result
selects the shell convention used to launch the job's commands.

The OS is probed fresh for every execution: a tag may point at different
content between two runs.
"""

from __future__ import annotations

import json
import threading

from berth.core.errors import ImageProbeError
from berth.execution.docker.commands import DockerCommands
from berth.execution.models import JobLog
from berth.execution.process import ProcessDriver
from berth.framework.logging import log_step


def parse_image_os(output: str) -> str:
    """Extract ``Os`` from the first element of ``docker inspect`` JSON.

    Raises:
        ImageProbeError: If the output is not a non-empty JSON array whose
            first element is an object with a string ``Os`` field.
    """
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise ImageProbeError(f"Unable to parse image inspect output: {exc}", cause=exc) from exc

    if not isinstance(data, list) or not data or not isinstance(data[0], dict):
        raise ImageProbeError("Unexpected image inspect output: expected a non-empty JSON array of objects")

    os_family = data[0].get("Os")
    if not isinstance(os_family, str) or not os_family:
        raise ImageProbeError("Image inspect output has no 'Os' field")
    return os_family


class OSProber:
    """Runs ``docker inspect`` against a pulled image."""

    def __init__(self, driver: ProcessDriver, commands: DockerCommands) -> None:
        self._driver = driver
        self._commands = commands

    def probe(self, image: str, job_log: JobLog, cancel: threading.Event | None = None) -> str:
        """Return the OS family of ``image``.

        Raises:
            ImageProbeError: If inspect exits non-zero or its output
                cannot be parsed.
        """
        job_log.info("Checking image OS...")
        lines: list[str] = []
        with log_step("image.os", image=image) as timer:
            self._driver.execute(
                self._commands.inspect(image),
                lines.append,
                job_log.error,
                cancel=cancel,
            ).check_ok(ImageProbeError)
            os_family = parse_image_os("\n".join(lines))
            timer.add_metric("os", os_family)
        return os_family
