"""
Executor settings for berth.

Manifesto:
    One validated settings object describes how jobs reach the container
    runtime: which executable, which registry and credentials, which extra
    ``docker run`` options, and how many jobs may run at once. Invalid
    combinations are rejected when the object is built, long before a
    container is started.

All fields can be set via ``BERTH_*`` environment variables (e.g.
``BERTH_DOCKER_REGISTRY=myreg.local``) or a ``.env`` file.

Tags:
    berth, configuration, settings, pydantic, validation

Doc-Types:
    api-reference
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from berth.execution.docker.options import (
    find_reserved_options,
    parse_run_options,
    reserved_options_message,
)


def _default_capacity() -> int:
    return os.cpu_count() or 1


class ExecutorSettings(BaseSettings):
    """Configuration of a local Docker job executor."""

    model_config = SettingsConfigDict(
        env_prefix="BERTH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )

    # ── Runtime ──────────────────────────────────────────────────
    docker_executable: str | None = Field(
        default=None,
        description="Docker executable, for instance /usr/local/bin/docker. Empty uses docker on PATH",
    )

    # ── Registry ─────────────────────────────────────────────────
    docker_registry: str | None = Field(
        default=None,
        description="Docker registry to pull from. Empty uses the official registry",
    )
    authenticate_to_registry: bool = Field(default=False)
    username: str | None = Field(default=None)
    password: SecretStr | None = Field(default=None)

    # ── Container ────────────────────────────────────────────────
    run_options: str | None = Field(
        default=None,
        description="Extra options for docker run, for instance '-m 2g' to limit memory",
    )
    container_workspace: str = Field(default="onedev-workspace")
    script_stem: str = Field(default="onedev-job-commands")
    stop_grace_seconds: float = Field(default=30.0, ge=0)

    # ── Capacity ─────────────────────────────────────────────────
    capacity: int = Field(
        default_factory=_default_capacity,
        gt=0,
        description="Max number of concurrent jobs. Defaults to number of processors",
    )

    # ── Paths ────────────────────────────────────────────────────
    workspace_root: Path | None = Field(default=None)

    # ── Logging ──────────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")

    @field_validator("docker_executable", "docker_registry", "username", "run_options", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _validate_executor(self) -> ExecutorSettings:
        violations = collect_violations(
            authenticate_to_registry=self.authenticate_to_registry,
            username=self.username,
            password=self.password,
            run_options=self.run_options,
        )
        if violations:
            raise ValueError("; ".join(violations))
        return self

    # ── Derived properties ───────────────────────────────────────

    @property
    def docker_command(self) -> str:
        return self.docker_executable or "docker"

    @property
    def run_option_tokens(self) -> list[str]:
        return parse_run_options(self.run_options)

    def redacted(self) -> dict[str, Any]:
        """Settings as a plain dict with the password masked."""
        data = self.model_dump(mode="json")
        if self.password is not None:
            data["password"] = "***"
        return data


def collect_violations(
    *,
    authenticate_to_registry: bool,
    username: str | None,
    password: SecretStr | str | None,
    run_options: str | None,
) -> list[str]:
    """Return every configuration problem without raising.

    Returns:
        List of violation messages. Empty list = configuration is valid.
    """
    violations: list[str] = []

    if authenticate_to_registry:
        secret = password.get_secret_value() if isinstance(password, SecretStr) else password
        if not username:
            violations.append("username is required when authenticating to registry")
        if not secret:
            violations.append("password is required when authenticating to registry")

    try:
        tokens = parse_run_options(run_options)
    except ValueError as exc:
        violations.append(f"run_options can not be parsed: {exc}")
    else:
        if find_reserved_options(tokens):
            violations.append(reserved_options_message())

    return violations


def load_settings(**overrides: Any) -> ExecutorSettings:
    """Build a fresh, validated settings object.

    Explicit keyword overrides win over environment variables and ``.env``.
    ``None`` overrides are ignored so CLI options can be passed through
    unconditionally.
    """
    return ExecutorSettings(**{k: v for k, v in overrides.items() if v is not None})
