"""Launcher plans — how a job's commands are started inside the container.

The probed image OS picks one of two conventions:

    OS        script                        eol    mount point             shell
    ────────  ────────────────────────────  ─────  ──────────────────────  ─────────────────────
    windows   <stem>.bat                    \\r\\n   C:\\<workspace>          cmd /c <mount>\\<stem>.bat
    other     <stem>.sh                     \\n     /<workspace>            sh -c <mount>/<stem>.sh

Any OS string other than ``windows`` is treated as POSIX-shell compatible.
"""

from __future__ import annotations

from dataclasses import dataclass

WINDOWS = "windows"
TEST_MESSAGE = "echo this is a test"


@dataclass(frozen=True)
class LaunchPlan:
    """Script layout and shell invocation for one OS family."""

    os_family: str
    container_dir: str
    script_name: str
    line_terminator: str
    shell: tuple[str, str]
    path_separator: str

    @property
    def is_windows(self) -> bool:
        return self.os_family == WINDOWS

    @property
    def script_path(self) -> str:
        """Path of the launcher script inside the container."""
        return f"{self.container_dir}{self.path_separator}{self.script_name}"

    def script_invocation(self) -> list[str]:
        """Shell argv that runs the launcher script."""
        return [*self.shell, self.script_path]

    def test_invocation(self) -> list[str]:
        """Shell argv that runs a trivial echo, used to test a configuration."""
        return [*self.shell, TEST_MESSAGE]


def plan_for(os_family: str, container_workspace: str, script_stem: str) -> LaunchPlan:
    """Build the launch plan for ``os_family``."""
    if os_family == WINDOWS:
        return LaunchPlan(
            os_family=os_family,
            container_dir=f"C:\\{container_workspace}",
            script_name=f"{script_stem}.bat",
            line_terminator="\r\n",
            shell=("cmd", "/c"),
            path_separator="\\",
        )
    return LaunchPlan(
        os_family=os_family,
        container_dir=f"/{container_workspace}",
        script_name=f"{script_stem}.sh",
        line_terminator="\n",
        shell=("sh", "-c"),
        path_separator="/",
    )
