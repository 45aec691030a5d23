# account_core_api/accountlibs/distro.py
from __future__ import annotations

from typing import Dict, List, Optional, Tuple, Type

from accountlibs import logger, CLICommandError, run_cli_command

OS_RELEASE_PATH = "/etc/os-release"


class UnsupportedDistroError(RuntimeError):
    """No command table is registered for the detected operating system."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__(f"No config for operating system: {identity!r}")


def parse_os_release(text: str) -> str:
    """
    Build the short identity string (e.g. ``debian:11``) from os-release content.

    Only the ``ID`` and ``VERSION_ID`` keys are used. Quote characters are stripped
    from the values and a later line overrides an earlier one.

    Returns:
        ``"id:version_id"``, ``"id"`` or ``""`` when no ``ID`` line is present.
    """
    distro_id = ""
    version_id = ""
    for line in text.splitlines():
        key, sep, value = line.strip().partition("=")
        if not sep:
            continue
        value = value.strip().replace('"', "").replace("'", "")
        if key == "ID":
            distro_id = value
        elif key == "VERSION_ID":
            version_id = value

    if distro_id and version_id:
        return f"{distro_id}:{version_id}"
    elif distro_id:
        return distro_id
    return ""


def get_os_identity(path: str = OS_RELEASE_PATH) -> str:
    """
    Read the os-release file and return the short identity of this system.

    Raises:
        OSError: the file cannot be read. Nothing useful can be done without it.
    """
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        identity = parse_os_release(f.read())
    logger.debug(f"detected operating system identity: {identity!r}")
    return identity


class DistroCommands:
    """
    Account management commands of one distribution family.

    Every operation runs a single external utility, waits for it to finish and returns
    whatever it printed (stdout and stderr combined). A non-zero exit or a failure to
    start the utility raises CLICommandError with that output attached.

    Subclasses only describe how accounts are created and removed; modification goes
    through ``usermod`` everywhere.
    """

    family = ""

    def __init__(self, identity: str = "") -> None:
        self.identity = identity

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.identity!r})"

    # ---------- argument vectors ----------
    def add_user_args(self, username: str, home: str) -> List[str]:
        raise NotImplementedError

    def del_user_args(self, username: str) -> List[str]:
        raise NotImplementedError

    # ---------- operations ----------
    def add_user(self, username: str, home: str) -> str:
        return self._run(self.add_user_args(username, home))

    def del_user(self, username: str) -> str:
        # a user with live processes cannot be removed by userdel/deluser
        self.kill_user_processes(username)
        return self._run(self.del_user_args(username))

    def change_shell(self, username: str, shell: str) -> str:
        return self._run(["usermod", "--shell", shell, username])

    def change_password(self, username: str, password: str) -> str:
        """``password`` is written as-is into the shadow entry, so it must already be hashed."""
        return self._run(["usermod", "--password", password, username])

    def change_home_dir(self, username: str, home: str) -> str:
        return self._run(["usermod", "--move-home", "--home", home, username])

    def change_groups(self, username: str, groups: str) -> str:
        return self._run(["usermod", "--groups", groups, username])

    def change_comment(self, username: str, comment: str) -> str:
        return self._run(["usermod", "--comment", comment, username])

    def kill_user_processes(self, username: str) -> None:
        """
        Send SIGKILL to every process owned by ``username``.

        Both the lookup and the kill are best effort: a user without processes is the
        normal case, so failures are logged and never raised.
        """
        processes = self._run_quietly(["pgrep", "-l", "-u", username])
        if not processes:
            return
        logger.info(f"Found {username} processes: {_one_line(processes)}")

        killed = self._run_quietly(["pkill", "--signal", "9", "-e", "-u", username])
        if killed:
            logger.info(f"Killed {username} processes: {_one_line(killed)}")

    @staticmethod
    def _run(command: List[str]) -> str:
        stdout, _ = run_cli_command(command, merge_stderr=True)
        return stdout

    @staticmethod
    def _run_quietly(command: List[str]) -> str:
        # pgrep/pkill exit 1 when no process matched
        try:
            stdout, _ = run_cli_command(command, merge_stderr=True, log_on_error=False)
        except CLICommandError as e:
            if e.returncode != 1:
                logger.warning(f"{command[0]} failed: {e}")
            return ""
        return stdout.strip()


class CentOSCommands(DistroCommands):
    """CentOS 7: shadow-utils, where ``adduser`` is an alias of ``useradd``."""

    family = "centos"

    def add_user_args(self, username: str, home: str) -> List[str]:
        return ["adduser", "-m", "--home-dir", home, username]

    def del_user_args(self, username: str) -> List[str]:
        return ["userdel", "--remove", "-f", username]


class DebianCommands(DistroCommands):
    """Debian and Ubuntu: the interactive ``adduser``/``deluser`` front-ends."""

    family = "debian"

    def add_user_args(self, username: str, home: str) -> List[str]:
        return ["adduser", "--home", home, "--disabled-password", username]

    def del_user_args(self, username: str) -> List[str]:
        return ["deluser", "--remove-home", username]


class FlatcarCommands(CentOSCommands):
    """Flatcar Container Linux ships shadow-utils without the ``adduser`` alias."""

    family = "flatcar"

    def add_user_args(self, username: str, home: str) -> List[str]:
        return ["useradd", "-m", "--home-dir", home, username]


_EXACT_REGISTRY: Dict[str, Type[DistroCommands]] = {
    **dict.fromkeys(["centos:7", "centos:7.4", "centos:7.5", "centos:7.6"], CentOSCommands),
    **dict.fromkeys([
        "debian", "debian:8", "debian:9", "debian:10", "debian:11", "debian:12",
        "ubuntu:16.04", "ubuntu:18.04", "ubuntu:18.10", "ubuntu:19.04",
    ], DebianCommands),
}

# version suffixes of these change with every release
_PREFIX_REGISTRY: List[Tuple[str, Type[DistroCommands]]] = [
    ("flatcar", FlatcarCommands),
]


def find_commands_class(identity: str) -> Optional[Type[DistroCommands]]:
    """Registry lookup: exact identity first, then the prefix list. None when unsupported."""
    flavour = identity.lower()
    if flavour in _EXACT_REGISTRY:
        return _EXACT_REGISTRY[flavour]
    for prefix, commands_class in _PREFIX_REGISTRY:
        if flavour.startswith(prefix):
            return commands_class
    return None


def get_os_commands(identity: str) -> DistroCommands:
    """
    Return the command table for an operating system identity.

    Raises:
        UnsupportedDistroError: nothing is registered for ``identity``. Running privileged
        account commands with a guessed syntax is not an option, so callers should stop.
    """
    commands_class = find_commands_class(identity)
    if commands_class is None:
        logger.error(f"No config for operating system: {identity.lower()!r}")
        raise UnsupportedDistroError(identity.lower())
    return commands_class(identity.lower())


def supported_identities() -> List[str]:
    return sorted(_EXACT_REGISTRY) + [f"{prefix}*" for prefix, _ in _PREFIX_REGISTRY]


def _one_line(text: str) -> str:
    return text.replace("\n", " ").strip()
