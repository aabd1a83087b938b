"""Docker runtime pieces used by the job runner.

Modules:
    commands   - argv builders for the docker CLI (inspect/login/pull/run/stop)
    registry   - image reference resolution and registry login
    probe      - image OS detection via ``docker inspect``
    launcher   - per-OS launcher script layout and shell invocation
    options    - run-option tokenising and reserved-option checks
"""

from berth.execution.docker.commands import DockerCommands
from berth.execution.docker.launcher import LaunchPlan, plan_for
from berth.execution.docker.options import (
    RESERVED_RUN_OPTIONS,
    find_reserved_options,
    parse_run_options,
    reserved_options_message,
)
from berth.execution.docker.probe import OSProber, parse_image_os
from berth.execution.docker.registry import RegistryAuthenticator, resolve_image

__all__ = [
    "DockerCommands",
    "LaunchPlan",
    "OSProber",
    "RESERVED_RUN_OPTIONS",
    "RegistryAuthenticator",
    "find_reserved_options",
    "parse_image_os",
    "parse_run_options",
    "plan_for",
    "reserved_options_message",
    "resolve_image",
]
