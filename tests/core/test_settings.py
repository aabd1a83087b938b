"""Tests for berth.core.settings — env loading, validation and derived values."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from berth.core.settings import ExecutorSettings, collect_violations, load_settings


class TestDefaults:
    def test_defaults(self):
        settings = ExecutorSettings()
        assert settings.docker_command == "docker"
        assert settings.docker_registry is None
        assert settings.authenticate_to_registry is False
        assert settings.container_workspace == "onedev-workspace"
        assert settings.script_stem == "onedev-job-commands"
        assert settings.capacity >= 1
        assert settings.run_option_tokens == []

    def test_capacity_defaults_to_cpu_count(self, monkeypatch):
        monkeypatch.setattr("berth.core.settings.os.cpu_count", lambda: 6)
        assert ExecutorSettings().capacity == 6

    def test_capacity_falls_back_to_one(self, monkeypatch):
        monkeypatch.setattr("berth.core.settings.os.cpu_count", lambda: None)
        assert ExecutorSettings().capacity == 1

    def test_blank_strings_become_none(self):
        settings = ExecutorSettings(docker_executable="  ", docker_registry="", run_options=" ")
        assert settings.docker_executable is None
        assert settings.docker_command == "docker"
        assert settings.docker_registry is None


class TestEnvironment:
    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("BERTH_DOCKER_REGISTRY", "myreg.local")
        monkeypatch.setenv("BERTH_CAPACITY", "3")
        monkeypatch.setenv("BERTH_RUN_OPTIONS", "-m 2g --cpus 1")
        settings = ExecutorSettings()
        assert settings.docker_registry == "myreg.local"
        assert settings.capacity == 3
        assert settings.run_option_tokens == ["-m", "2g", "--cpus", "1"]

    def test_reads_dotenv(self, tmp_path):
        (tmp_path / ".env").write_text("BERTH_DOCKER_EXECUTABLE=/usr/local/bin/docker\n")
        assert ExecutorSettings().docker_command == "/usr/local/bin/docker"

    def test_overrides_win_and_none_is_ignored(self, monkeypatch):
        monkeypatch.setenv("BERTH_CAPACITY", "3")
        settings = load_settings(capacity=5, docker_registry=None)
        assert settings.capacity == 5
        assert settings.docker_registry is None


class TestValidation:
    def test_zero_capacity_rejected(self):
        with pytest.raises(ValidationError):
            ExecutorSettings(capacity=0)

    def test_authentication_requires_credentials(self):
        with pytest.raises(ValidationError) as exc_info:
            ExecutorSettings(authenticate_to_registry=True)
        text = str(exc_info.value)
        assert "username is required" in text
        assert "password is required" in text

    def test_authentication_with_credentials(self):
        settings = ExecutorSettings(authenticate_to_registry=True, username="bot", password="s3cret")
        assert settings.password.get_secret_value() == "s3cret"

    @pytest.mark.parametrize("options", ["--name foo", "-w /x", "--rm", "--restart=always", "-it"])
    def test_reserved_run_options_rejected(self, options):
        with pytest.raises(ValidationError, match="Can not use options"):
            ExecutorSettings(run_options=options)

    def test_unbalanced_quotes_rejected(self):
        with pytest.raises(ValidationError, match="can not be parsed"):
            ExecutorSettings(run_options="-e 'FOO=bar")

    def test_assignment_is_validated(self):
        settings = ExecutorSettings()
        with pytest.raises(ValidationError):
            settings.run_options = "--detach"

    def test_collect_violations_returns_all(self):
        violations = collect_violations(
            authenticate_to_registry=True,
            username=None,
            password=None,
            run_options="--name x",
        )
        assert len(violations) == 3

    def test_collect_violations_valid(self):
        assert collect_violations(
            authenticate_to_registry=False, username=None, password=None, run_options="-m 2g",
        ) == []


class TestRedacted:
    def test_password_masked(self):
        settings = ExecutorSettings(authenticate_to_registry=True, username="bot", password="s3cret")
        data = settings.redacted()
        assert data["password"] == "***"
        assert data["username"] == "bot"
        assert "s3cret" not in str(data)

    def test_no_password(self):
        assert ExecutorSettings().redacted()["password"] is None
