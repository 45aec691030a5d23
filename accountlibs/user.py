#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import os
import re
from typing import Any, Callable, Dict, List, Optional, Union

from accountlibs import logger, CLICommandError
from accountlibs.distro import DistroCommands
from accountlibs.hook import HookEvent, HookExecutor, NoopHookExecutor

USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]*\$?$")
MASKED = "***"


class UserManager:
    """
    Linux account lifecycle on top of a distribution command table.

    Reads account state from the passwd and group databases, changes it only through the
    external utilities of ``commands``, and reports every change (or failure) to ``hooks``.
    Failures of the utilities are raised as CLICommandError after the error hook ran.
    """

    def __init__(self, commands: DistroCommands, hooks: Optional[HookExecutor] = None, passwd_path: str = "/etc/passwd", group_path: str = "/etc/group") -> None:
        self.commands = commands
        self.hooks = hooks or NoopHookExecutor()
        self.passwd_path = passwd_path
        self.group_path = group_path

    # ---------- read-only ----------
    def list_users(self, include_system: bool = False) -> List[str]:
        """
        Return the sorted account names from the passwd database.

        Args:
            include_system (bool): If False (default), accounts with UID < 1000 are left out.
        """
        users = []
        for entry in self._read_passwd():
            if not include_system and entry["uid"] < 1000:
                continue
            users.append(entry["username"])
        users.sort()
        return users

    def get_user(self, username: str) -> Optional[Dict[str, Any]]:
        """Return the passwd entry of ``username`` plus its supplementary groups, or None."""
        entry = next((e for e in self._read_passwd() if e["username"] == username), None)
        if entry is None:
            return None
        entry["groups"] = self.get_user_groups(username)
        return entry

    def get_user_groups(self, username: str) -> List[str]:
        groups = []
        with open(self.group_path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                parts = line.strip().split(":")
                if len(parts) < 4:
                    continue
                members = [m for m in parts[3].split(",") if m]
                if username in members:
                    groups.append(parts[0])
        return sorted(groups)

    def _read_passwd(self) -> List[Dict[str, Any]]:
        entries = []
        with open(self.passwd_path, "r", encoding="utf-8", errors="replace") as f:
            for line in f:
                line = line.strip()
                if not line or line.startswith("#"):
                    continue
                parts = line.split(":")
                if len(parts) < 7:
                    continue
                try:
                    uid = int(parts[2])
                    gid = int(parts[3])
                except ValueError:
                    continue
                entries.append({
                    "username": parts[0],
                    "uid": uid,
                    "gid": gid,
                    "comment": parts[4],
                    "home": parts[5],
                    "shell": parts[6],
                })
        return entries

    # ---------- lifecycle ----------
    def add_user(self, username: str, home: Optional[str] = None) -> str:
        validate_username(username)
        home = home or os.path.join("/home", username)
        _validate_path(home, "home")
        try:
            output = self.commands.add_user(username, home)
        except CLICommandError as e:
            self.hooks.execute(HookEvent.ERR_USER_ADD, username, str(e))
            raise
        logger.info(f"user {username} created with home {home}")
        self.hooks.execute(HookEvent.USER_ADD, username, home)
        return output

    def delete_user(self, username: str) -> str:
        validate_username(username)
        try:
            output = self.commands.del_user(username)
        except CLICommandError as e:
            self.hooks.execute(HookEvent.ERR_USER_DEL, username, str(e))
            raise
        logger.info(f"user {username} deleted")
        self.hooks.execute(HookEvent.USER_DEL, username)
        return output

    def change_shell(self, username: str, shell: str) -> str:
        _validate_path(shell, "shell")
        return self._modify(username, "shell", shell, self.commands.change_shell)

    def change_password(self, username: str, password: str) -> str:
        """``password`` must already be a crypt(3) hash; it is stored verbatim."""
        if not password:
            raise ValueError("password must not be empty")
        return self._modify(username, "password", password, self.commands.change_password, secret=True)

    def change_home_dir(self, username: str, home: str) -> str:
        _validate_path(home, "home")
        return self._modify(username, "home", home, self.commands.change_home_dir)

    def change_groups(self, username: str, groups: Union[str, List[str]]) -> str:
        return self._modify(username, "groups", normalize_groups(groups), self.commands.change_groups)

    def change_comment(self, username: str, comment: str) -> str:
        if ":" in comment or "\n" in comment:
            raise ValueError("comment must not contain ':' or newlines")
        return self._modify(username, "comment", comment, self.commands.change_comment)

    def _modify(self, username: str, field: str, value: str, operation: Callable[[str, str], str], secret: bool = False) -> str:
        validate_username(username)
        before = MASKED if secret else self._current_value(username, field)
        try:
            output = operation(username, value)
        except CLICommandError as e:
            self.hooks.execute(HookEvent.ERR_USER_MOD, username, field, str(e))
            raise
        after = MASKED if secret else value
        logger.info(f"user {username}: {field} changed from {before!r} to {after!r}")
        self.hooks.execute(HookEvent.USER_MOD, username, field, before, after)
        return output

    def _current_value(self, username: str, field: str) -> str:
        try:
            entry = self.get_user(username)
        except (OSError, ValueError) as e:
            logger.warning(f"could not read current {field} of {username}: {e}")
            return ""
        if entry is None:
            return ""
        value = entry.get(field, "")
        return ",".join(value) if isinstance(value, list) else str(value)


def validate_username(username: str) -> None:
    if not username or not isinstance(username, str):
        raise ValueError("Username must be a non-empty string.")
    if len(username) > 32:
        raise ValueError("Username must not be longer than 32 characters.")
    if not USERNAME_RE.match(username):
        raise ValueError(f"Invalid username {username!r}: must start with a lowercase letter or '_' and contain only a-z, 0-9, '_' or '-'.")


def normalize_groups(groups: Union[str, List[str], None]) -> str:
    """``["wheel", " docker"]`` or ``"wheel, docker"`` -> ``"wheel,docker"``"""
    if groups is None:
        raise ValueError("groups must be a list or a comma separated string")
    if isinstance(groups, str):
        groups = groups.split(",")
    names = [g.strip() for g in groups if g and g.strip()]
    for name in names:
        if not USERNAME_RE.match(name):
            raise ValueError(f"Invalid group name {name!r}")
    return ",".join(names)


def _validate_path(value: str, field: str) -> None:
    if not value or not value.startswith("/"):
        raise ValueError(f"{field} must be an absolute path")
