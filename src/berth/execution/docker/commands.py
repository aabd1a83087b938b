"""Command lines for the ``docker`` CLI surface the engine uses.

The engine never talks to the Docker API directly; it shells out to the
runtime binary (``docker`` on PATH or a configured override), which also
works with any runtime exposing a docker-compatible CLI.

    inspect <image>
    login -u <user> --password-stdin [registry]
    pull <image>
    run --rm --name <id> [run-options] -v <host>:<container> -w <container> <image> <shell...>
    stop <id>
"""

from __future__ import annotations

from collections.abc import Sequence


class DockerCommands:
    """Builds argv lists for one docker executable."""

    def __init__(self, executable: str = "docker") -> None:
        self.executable = executable

    def inspect(self, image: str) -> list[str]:
        return [self.executable, "inspect", image]

    def login(self, username: str, registry: str | None = None) -> list[str]:
        argv = [self.executable, "login", "-u", username, "--password-stdin"]
        if registry:
            argv.append(registry)
        return argv

    def pull(self, image: str) -> list[str]:
        return [self.executable, "pull", image]

    def run(
        self,
        image: str,
        shell: Sequence[str],
        *,
        host_dir: str,
        container_dir: str,
        name: str | None = None,
        options: Sequence[str] = (),
    ) -> list[str]:
        argv = [self.executable, "run", "--rm"]
        if name:
            argv.extend(["--name", name])
        argv.extend(options)
        argv.extend(["-v", f"{host_dir}:{container_dir}"])
        argv.extend(["-w", container_dir])
        argv.append(image)
        argv.extend(shell)
        return argv

    def stop(self, name: str) -> list[str]:
        return [self.executable, "stop", name]
