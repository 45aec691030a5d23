# account_core_api/services.py
from __future__ import annotations

import logging
from functools import lru_cache

from django.conf import settings

from accountlibs.distro import DistroCommands, get_os_commands, get_os_identity
from accountlibs.hook import HookExecutor, get_hook_executor
from accountlibs.user import UserManager

logger = logging.getLogger(__name__)


def _accounts_setting(name: str, default: str = "") -> str:
    return getattr(settings, "ACCOUNTS", {}).get(name, default)


# Identity, command table and hook executor are resolved once per process.
@lru_cache(maxsize=None)
def get_identity() -> str:
    return get_os_identity(_accounts_setting("OS_RELEASE_PATH", "/etc/os-release"))


@lru_cache(maxsize=None)
def get_commands() -> DistroCommands:
    commands = get_os_commands(get_identity())
    logger.info(f"using {commands!r} for account management")
    return commands


@lru_cache(maxsize=None)
def get_hooks() -> HookExecutor:
    return get_hook_executor(_accounts_setting("HOOK_COMMAND"))


def get_user_manager() -> UserManager:
    return UserManager(
        commands=get_commands(),
        hooks=get_hooks(),
        passwd_path=_accounts_setting("PASSWD_PATH", "/etc/passwd"),
        group_path=_accounts_setting("GROUP_PATH", "/etc/group"),
    )


def reset() -> None:
    """Forget everything resolved so far (settings changed, tests)."""
    get_identity.cache_clear()
    get_commands.cache_clear()
    get_hooks.cache_clear()
