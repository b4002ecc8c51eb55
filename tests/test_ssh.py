"""Tests for the sshpass launcher and ssh_config export."""

from __future__ import annotations

import subprocess

import pytest

from hostvault.errors import LauncherUnavailable
from hostvault.ssh.config_export import MANAGED_MARKER, append_ssh_config, render_ssh_config
from hostvault.ssh.launcher import SshpassLauncher


class FakeRunner:
    def __init__(self, returncode=0):
        self.returncode = returncode
        self.calls = []

    def __call__(self, argv, env, check):
        self.calls.append((list(argv), dict(env)))
        return subprocess.CompletedProcess(argv, self.returncode)


def _which_all(name):
    return f"/usr/bin/{name}"


class TestSshpassLauncher:
    def test_password_only_in_environment(self, make_record):
        runner = FakeRunner()
        launcher = SshpassLauncher(runner=runner, which=_which_all)
        record = make_record("prod", "1.2.3.4", username="deploy", password="hunter2", port=2200)

        assert launcher.connect(record) == 0

        argv, env = runner.calls[0]
        assert argv[:4] == ["sshpass", "-e", "ssh", "-tt"]
        assert argv[-2:] == ["--", "deploy@1.2.3.4"]
        assert argv[argv.index("-p") + 1] == "2200"
        assert not any("hunter2" in arg for arg in argv)
        assert env["SSHPASS"] == b"hunter2"

    def test_every_option_precedes_destination(self, make_record):
        launcher = SshpassLauncher(runner=FakeRunner(), which=_which_all)
        with make_record(username="deploy-bot").connection() as details:
            argv = launcher.build_argv(details)
        separator = argv.index("--")
        assert argv[separator + 1 :] == ["deploy-bot@1.2.3.4"]
        assert argv[4:separator] == ["-p", "22", "-o", "StrictHostKeyChecking=accept-new"]

    def test_exit_status_passed_through(self, make_record):
        launcher = SshpassLauncher(runner=FakeRunner(255), which=_which_all)
        assert launcher.connect(make_record()) == 255

    def test_record_password_intact_after_connect(self, make_record):
        record = make_record(password="p")
        SshpassLauncher(runner=FakeRunner(), which=_which_all).connect(record)
        assert record.password == "p"

    def test_unavailable(self, make_record):
        launcher = SshpassLauncher(runner=FakeRunner(), which=lambda name: None)
        with pytest.raises(LauncherUnavailable, match="ssh u@1.2.3.4 -p 22"):
            launcher.connect(make_record())


class TestConnectionView:
    def test_password_wiped_after_use(self, make_record):
        record = make_record(password="secret")
        with record.connection() as details:
            assert details.password == bytearray(b"secret")
            buf = details.password
        assert buf == bytearray(6)
        assert record.password == "secret"


class TestSshConfig:
    def test_render(self, make_record):
        text = render_ssh_config(
            [make_record("web prod", "10.0.0.1", username="root", port=2222, password="x")]
        )
        assert text == "Host web-prod\n  HostName 10.0.0.1\n  User root\n  Port 2222\n"
        assert "Password" not in text

    def test_one_directive_per_line(self, make_record):
        text = render_ssh_config([make_record("a"), make_record("b b", host="h.example")])
        directives = [line.split()[0] for line in text.splitlines() if line.strip()]
        assert directives == ["Host", "HostName", "User", "Port"] * 2

    def test_append_keeps_existing(self, tmp_path, make_record):
        path = tmp_path / ".ssh" / "config"
        path.parent.mkdir()
        path.write_text("Host old\n  HostName old.example\n")
        append_ssh_config([make_record("a"), make_record("b")], path)
        content = path.read_text()
        assert content.startswith("Host old\n")
        assert MANAGED_MARKER in content
        assert "Host a\n" in content and "Host b\n" in content
        assert "Password" not in content
