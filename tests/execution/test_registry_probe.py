"""Tests for image resolution, registry login and OS probing."""

from __future__ import annotations

import pytest

from berth.core.errors import ImageProbeError, RegistryLoginError
from berth.core.settings import ExecutorSettings
from berth.execution.docker import DockerCommands, OSProber, RegistryAuthenticator, parse_image_os, resolve_image


class TestResolveImage:
    @pytest.mark.parametrize(
        ("image", "registry", "expected"),
        [
            ("nginx", None, "nginx"),
            ("nginx", "", "nginx"),
            ("nginx:1.25", "myreg.local", "myreg.local/library/nginx:1.25"),
            ("acme/app", "myreg.local", "myreg.local/acme/app"),
            ("acme/app", "myreg.local/", "myreg.local/acme/app"),
        ],
    )
    def test_resolve(self, image, registry, expected):
        assert resolve_image(image, registry) == expected


class TestLogin:
    def test_skipped_when_not_configured(self, driver, job_log):
        auth = RegistryAuthenticator(driver, DockerCommands())
        assert auth.login(ExecutorSettings(), job_log) is False
        assert driver.calls == []

    def test_password_on_stdin_only(self, driver, job_log):
        settings = ExecutorSettings(
            authenticate_to_registry=True, username="bot", password="s3cret", docker_registry="myreg.local",
        )
        auth = RegistryAuthenticator(driver, DockerCommands())
        assert auth.login(settings, job_log) is True

        (call,) = driver.calls
        assert call.argv == ["docker", "login", "-u", "bot", "--password-stdin", "myreg.local"]
        assert call.stdin == b"s3cret"
        assert "s3cret" not in " ".join(call.argv)
        assert "s3cret" in call.redact
        assert "Login to docker registry..." in job_log.messages("info")

    def test_rejected_login(self, driver, job_log):
        driver.respond("login", exit_code=1, stderr=["unauthorized"])
        settings = ExecutorSettings(authenticate_to_registry=True, username="bot", password="bad")
        with pytest.raises(RegistryLoginError, match="unauthorized"):
            RegistryAuthenticator(driver, DockerCommands()).login(settings, job_log)


class TestParseImageOs:
    def test_linux(self):
        assert parse_image_os('[{"Id": "sha256:1", "Os": "linux"}]') == "linux"

    def test_multiline_output(self):
        assert parse_image_os('[\n  {\n    "Os": "windows"\n  }\n]') == "windows"

    @pytest.mark.parametrize("output", ["", "not json", "[]", "{}", '[{"Id": "x"}]', '["linux"]', '[{"Os": ""}]'])
    def test_malformed(self, output):
        with pytest.raises(ImageProbeError):
            parse_image_os(output)


class TestOSProber:
    def test_probe(self, driver, job_log):
        driver.respond("inspect", stdout=["[", '  {"Os": "windows"}', "]"])
        os_family = OSProber(driver, DockerCommands()).probe("myreg.local/library/nginx", job_log)
        assert os_family == "windows"
        assert driver.calls[0].argv == ["docker", "inspect", "myreg.local/library/nginx"]
        assert "Checking image OS..." in job_log.messages("info")

    def test_inspect_failure(self, driver, job_log):
        driver.respond("inspect", exit_code=1, stderr=["No such image"])
        with pytest.raises(ImageProbeError):
            OSProber(driver, DockerCommands()).probe("missing", job_log)
