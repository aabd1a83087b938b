"""Registry access — image reference resolution and login.

Image resolution:

    registry       image          pulled as
    ─────────────  ─────────────  ────────────────────────────
    (none)         nginx          nginx
    myreg.local    acme/app       myreg.local/acme/app
    myreg.local    nginx          myreg.local/library/nginx

Unqualified names are official images, which docker keeps under the
implicit ``library`` namespace; a custom registry needs it spelled out.

Login delivers the password on stdin (``--password-stdin``) so it never
shows up in process listings or in logged command lines.
"""

from __future__ import annotations

import threading
from typing import TYPE_CHECKING

from berth.core.errors import RegistryLoginError
from berth.execution.docker.commands import DockerCommands
from berth.execution.models import JobLog
from berth.execution.process import ProcessDriver
from berth.framework.logging import log_step

if TYPE_CHECKING:
    from berth.core.settings import ExecutorSettings


def resolve_image(image: str, registry: str | None) -> str:
    """Rewrite ``image`` into the reference to pull from ``registry``."""
    if not registry:
        return image
    registry = registry.rstrip("/")
    if "/" in image:
        return f"{registry}/{image}"
    return f"{registry}/library/{image}"


class RegistryAuthenticator:
    """Logs the container runtime into a registry when configured."""

    def __init__(self, driver: ProcessDriver, commands: DockerCommands) -> None:
        self._driver = driver
        self._commands = commands

    def login(
        self,
        settings: ExecutorSettings,
        job_log: JobLog,
        cancel: threading.Event | None = None,
    ) -> bool:
        """Log in if ``authenticate_to_registry`` is set.

        Returns:
            True if a login was performed, False if it was skipped.

        Raises:
            RegistryLoginError: If the runtime rejects the login.
        """
        if not settings.authenticate_to_registry:
            return False

        password = settings.password.get_secret_value() if settings.password else ""
        job_log.info("Login to docker registry...")
        argv = self._commands.login(settings.username or "", settings.docker_registry)
        with log_step("registry.login", registry=settings.docker_registry or "default"):
            self._driver.execute(
                argv,
                job_log.info,
                job_log.error,
                stdin=password.encode("utf-8"),
                cancel=cancel,
                redact=[password],
            ).check_ok(RegistryLoginError)
        return True
