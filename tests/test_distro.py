"""Tests for OS identity detection and the per-distribution command tables."""
import logging
import os
from unittest.mock import patch

import pytest

from accountlibs import CLICommandError
from accountlibs.distro import (
    CentOSCommands,
    DebianCommands,
    DistroCommands,
    FlatcarCommands,
    UnsupportedDistroError,
    _EXACT_REGISTRY,
    find_commands_class,
    get_os_commands,
    get_os_identity,
    parse_os_release,
)

OPERATIONS = ["add_user", "del_user", "change_shell", "change_password", "change_home_dir", "change_groups", "change_comment"]


class FakeRunner:
    """Stands in for run_cli_command and records every command."""

    def __init__(self, outputs=None, failures=None):
        self.outputs = outputs or {}
        self.failures = failures or {}
        self.commands = []

    def __call__(self, command, **kwargs):
        self.commands.append(list(command))
        if command[0] in self.failures:
            raise self.failures[command[0]]
        return self.outputs.get(command[0], ""), ""

    def programs(self):
        return [c[0] for c in self.commands]


def run_all_operations(commands):
    commands.add_user("alice", "/home/alice")
    commands.del_user("alice")
    commands.change_shell("alice", "/bin/zsh")
    commands.change_password("alice", "$6$salt$hash")
    commands.change_home_dir("alice", "/srv/alice")
    commands.change_groups("alice", "wheel,docker")
    commands.change_comment("alice", "Alice Liddell")


# ──────────────────────────────────────────────────
# OS identity
# ──────────────────────────────────────────────────

class TestOSIdentity:

    def test_id_and_version(self):
        assert parse_os_release('NAME="Debian GNU/Linux"\nID="debian"\nVERSION_ID="11"\n') == "debian:11"

    def test_id_only(self):
        assert parse_os_release('NAME="CentOS"\nID="centos"\n') == "centos"

    def test_neither_key(self):
        assert parse_os_release('NAME="Something"\nPRETTY_NAME="Something 1"\n') == ""

    def test_version_without_id_is_unresolvable(self):
        assert parse_os_release('VERSION_ID="11"\n') == ""

    def test_id_like_is_not_id(self):
        assert parse_os_release('ID_LIKE="rhel fedora"\nID=centos\nVERSION_ID=7\n') == "centos:7"

    def test_single_quotes_and_first_equals(self):
        assert parse_os_release("ID='flatcar'\nVERSION_ID=3510.3.2\nBUILD_ID=a=b\n") == "flatcar:3510.3.2"

    def test_reads_file(self, os_release):
        path = os_release("""\
            PRETTY_NAME="Ubuntu 18.04.6 LTS"
            ID=ubuntu
            VERSION_ID="18.04"
        """)
        assert get_os_identity(path) == "ubuntu:18.04"

    def test_undecodable_byte_is_tolerated(self, tmp_path):
        path = tmp_path / "os-release"
        path.write_bytes(b'PRETTY_NAME="Debian \xe9dition"\nID=debian\nVERSION_ID="11"\n')
        assert get_os_identity(str(path)) == "debian:11"

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            get_os_identity(str(tmp_path / "missing"))


# ──────────────────────────────────────────────────
# Registry
# ──────────────────────────────────────────────────

class TestRegistry:

    @pytest.mark.parametrize("identity", sorted(_EXACT_REGISTRY) + ["flatcar", "flatcar:3510.3.2", "flatcar:3815.2.0"])
    def test_supported_identity_has_all_operations(self, identity):
        commands = get_os_commands(identity)
        for name in OPERATIONS:
            assert callable(getattr(commands, name))

    @pytest.mark.parametrize("identity", ["arch", "centos:8", "fedora:39", "ubuntu:22.04", ""])
    def test_unknown_identity_raises(self, identity):
        with pytest.raises(UnsupportedDistroError) as exc_info:
            get_os_commands(identity)
        assert exc_info.value.identity == identity

    def test_lookup_is_case_insensitive(self):
        assert isinstance(get_os_commands("Ubuntu:18.04"), DebianCommands)
        assert isinstance(get_os_commands("CentOS:7.6"), CentOSCommands)
        assert isinstance(get_os_commands("Flatcar:3510.3.2"), FlatcarCommands)

    def test_families(self):
        assert find_commands_class("centos:7.4") is CentOSCommands
        assert find_commands_class("debian") is DebianCommands
        assert find_commands_class("flatcar:1") is FlatcarCommands
        assert find_commands_class("alpine:3.18") is None

    def test_each_lookup_builds_its_own_table(self):
        first = get_os_commands("debian:11")
        second = get_os_commands("ubuntu:18.04")
        assert first is not second
        assert first.identity == "debian:11"
        assert second.identity == "ubuntu:18.04"

    def test_debian_and_ubuntu_share_command_lines(self):
        debian_runner, ubuntu_runner = FakeRunner(), FakeRunner()
        with patch("accountlibs.distro.run_cli_command", debian_runner):
            run_all_operations(get_os_commands("debian:11"))
        with patch("accountlibs.distro.run_cli_command", ubuntu_runner):
            run_all_operations(get_os_commands("ubuntu:18.04"))
        assert debian_runner.commands == ubuntu_runner.commands


# ──────────────────────────────────────────────────
# Command lines
# ──────────────────────────────────────────────────

class TestCommandLines:

    def test_centos(self):
        runner = FakeRunner()
        with patch("accountlibs.distro.run_cli_command", runner):
            run_all_operations(get_os_commands("centos:7"))
        assert runner.commands == [
            ["adduser", "-m", "--home-dir", "/home/alice", "alice"],
            ["pgrep", "-l", "-u", "alice"],
            ["userdel", "--remove", "-f", "alice"],
            ["usermod", "--shell", "/bin/zsh", "alice"],
            ["usermod", "--password", "$6$salt$hash", "alice"],
            ["usermod", "--move-home", "--home", "/srv/alice", "alice"],
            ["usermod", "--groups", "wheel,docker", "alice"],
            ["usermod", "--comment", "Alice Liddell", "alice"],
        ]

    def test_debian_add_and_delete(self):
        runner = FakeRunner()
        with patch("accountlibs.distro.run_cli_command", runner):
            commands = get_os_commands("debian:12")
            commands.add_user("bob", "/home/bob")
            commands.del_user("bob")
        assert runner.commands == [
            ["adduser", "--home", "/home/bob", "--disabled-password", "bob"],
            ["pgrep", "-l", "-u", "bob"],
            ["deluser", "--remove-home", "bob"],
        ]

    def test_flatcar_uses_useradd(self):
        runner = FakeRunner()
        with patch("accountlibs.distro.run_cli_command", runner):
            commands = get_os_commands("flatcar:3510.3.2")
            commands.add_user("core2", "/home/core2")
            commands.del_user("core2")
        assert runner.commands[0] == ["useradd", "-m", "--home-dir", "/home/core2", "core2"]
        assert runner.commands[-1] == ["userdel", "--remove", "-f", "core2"]

    def test_operation_returns_output(self):
        runner = FakeRunner(outputs={"usermod": "usermod: no changes"})
        with patch("accountlibs.distro.run_cli_command", runner):
            assert get_os_commands("debian:11").change_shell("alice", "/bin/bash") == "usermod: no changes"

    def test_operation_failure_raises(self):
        failure = CLICommandError(["usermod"], 6, "", stdout="usermod: user 'ghost' does not exist")
        runner = FakeRunner(failures={"usermod": failure})
        with patch("accountlibs.distro.run_cli_command", runner):
            with pytest.raises(CLICommandError) as exc_info:
                get_os_commands("debian:11").change_comment("ghost", "Nobody")
        assert exc_info.value.returncode == 6
        assert "does not exist" in exc_info.value.output

    def test_operation_output_is_verbatim(self, tmp_path):
        script = tmp_path / "adduser"
        script.write_text("#!/bin/sh\nprintf '  Adding user alice ...\\n\\n'\n")
        script.chmod(0o755)
        assert DistroCommands._run([str(script)]) == "  Adding user alice ...\n\n"

    def test_operation_does_not_read_callers_stdin(self, tmp_path):
        out = tmp_path / "stdin"
        script = tmp_path / "adduser"
        script.write_text(f'#!/bin/sh\ncat > "{out}"\n')
        script.chmod(0o755)
        read_fd, write_fd = os.pipe()
        os.write(write_fd, b"y\ny\n")
        os.close(write_fd)
        saved = os.dup(0)
        os.dup2(read_fd, 0)
        os.close(read_fd)
        try:
            DistroCommands._run([str(script)])
        finally:
            os.dup2(saved, 0)
            os.close(saved)
        assert out.read_text() == ""


# ──────────────────────────────────────────────────
# Delete: process kill before removal
# ──────────────────────────────────────────────────

class TestDeleteUser:

    def test_no_processes_still_deletes(self):
        runner = FakeRunner()
        with patch("accountlibs.distro.run_cli_command", runner):
            get_os_commands("debian:11").del_user("alice")
        assert runner.programs() == ["pgrep", "deluser"]

    def test_processes_are_killed_first(self, caplog):
        caplog.set_level(logging.INFO, logger="accountlibs")
        runner = FakeRunner(outputs={
            "pgrep": "1234 sleep\n1235 bash\n",
            "pkill": "sleep killed (pid 1234)\nbash killed (pid 1235)",
        })
        with patch("accountlibs.distro.run_cli_command", runner):
            get_os_commands("centos:7.5").del_user("alice")

        assert runner.commands == [
            ["pgrep", "-l", "-u", "alice"],
            ["pkill", "--signal", "9", "-e", "-u", "alice"],
            ["userdel", "--remove", "-f", "alice"],
        ]
        assert "Found alice processes: 1234 sleep 1235 bash" in caplog.text
        assert "Killed alice processes: sleep killed (pid 1234) bash killed (pid 1235)" in caplog.text

    def test_lookup_failure_does_not_block_delete(self):
        failure = CLICommandError(["pgrep"], -1, "No such file or directory")
        runner = FakeRunner(failures={"pgrep": failure})
        with patch("accountlibs.distro.run_cli_command", runner):
            get_os_commands("debian:11").del_user("alice")
        assert runner.programs() == ["pgrep", "deluser"]

    def test_kill_failure_does_not_block_delete(self):
        failure = CLICommandError(["pkill"], -1, "No such file or directory")
        runner = FakeRunner(outputs={"pgrep": "1234 sleep"}, failures={"pkill": failure})
        with patch("accountlibs.distro.run_cli_command", runner):
            get_os_commands("flatcar").del_user("alice")
        assert runner.programs() == ["pgrep", "pkill", "userdel"]

    def test_no_match_is_quiet(self, caplog):
        caplog.set_level(logging.INFO, logger="accountlibs")
        failure = CLICommandError(["pgrep"], 1, "")
        runner = FakeRunner(failures={"pgrep": failure})
        with patch("accountlibs.distro.run_cli_command", runner):
            get_os_commands("debian:11").del_user("alice")
        assert runner.programs() == ["pgrep", "deluser"]
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    def test_kill_error_is_warned(self, caplog):
        caplog.set_level(logging.INFO, logger="accountlibs")
        failure = CLICommandError(["pkill"], 3, "pkill: fatal error")
        runner = FakeRunner(outputs={"pgrep": "1234 sleep"}, failures={"pkill": failure})
        with patch("accountlibs.distro.run_cli_command", runner):
            get_os_commands("centos:7").del_user("alice")
        assert runner.programs() == ["pgrep", "pkill", "userdel"]
        warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert warnings[0].startswith("pkill failed")

    def test_lookup_failures_are_not_logged_as_errors(self):
        calls = []

        def runner(command, **kwargs):
            calls.append((command[0], kwargs))
            return "", ""

        with patch("accountlibs.distro.run_cli_command", runner):
            get_os_commands("debian:11").del_user("alice")
        assert calls[0] == ("pgrep", {"merge_stderr": True, "log_on_error": False})
        assert calls[1] == ("deluser", {"merge_stderr": True})
