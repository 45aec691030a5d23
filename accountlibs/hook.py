# account_core_api/accountlibs/hook.py
from __future__ import annotations

import shutil
from enum import Enum
from typing import Optional

from accountlibs import logger, CLICommandError, run_cli_command


class HookEvent(str, Enum):
    """Tag passed as the first argument of the hook command."""

    WARN_JSON = "WJSON"
    ERR_GIT_OPS = "EGITOPS"
    ERR_USER_ADD = "EUSERADD"
    ERR_USER_DEL = "EUSERDEL"
    ERR_USER_MOD = "EUSERMOD"
    USER_ADD = "IUSERADD"
    USER_DEL = "IUSERDEL"
    USER_MOD = "IUSERMOD"

    def __str__(self) -> str:
        return self.value


class HookCommandNotFoundError(FileNotFoundError):
    """The configured hook command is not on PATH."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"hook command not found: {command}")


class HookExecutor:
    def execute(self, event: HookEvent, *messages: str) -> None:
        raise NotImplementedError


class NoopHookExecutor(HookExecutor):
    """Used when no hook command is configured."""

    def execute(self, event: HookEvent, *messages: str) -> None:
        pass


class CommandHookExecutor(HookExecutor):
    """Runs ``<path> <EVENT> [message...]`` for every event."""

    def __init__(self, path: str) -> None:
        self.path = path

    def __repr__(self) -> str:
        return f"CommandHookExecutor({self.path!r})"

    def execute(self, event: HookEvent, *messages: str) -> None:
        # a failing hook never affects the operation that triggered it
        command = [self.path, str(event), *[str(m) for m in messages]]
        try:
            run_cli_command(command, log_on_error=False)
        except CLICommandError as e:
            logger.warning(f"Warn: command {self.path} execution failure: {e}")


def get_hook_executor(command: Optional[str]) -> HookExecutor:
    """
    Pick the hook executor for a configured command name.

    An empty name disables hooks. Any other name is resolved through PATH once, here.

    Raises:
        HookCommandNotFoundError: the command was configured but cannot be found.
    """
    if not command:
        return NoopHookExecutor()
    path = shutil.which(command)
    if path is None:
        raise HookCommandNotFoundError(command)
    logger.debug(f"hook command resolved to {path}")
    return CommandHookExecutor(path)
