import json

from django.core.management.base import BaseCommand, CommandError

from accountlibs import CLICommandError
from accountlibs.distro import UnsupportedDistroError
from accountlibs.hook import HookCommandNotFoundError
from account_core_api import services


class Command(BaseCommand):
    help = "Manage operating system accounts with the utilities of the detected distribution."

    def add_arguments(self, parser):
        sub = parser.add_subparsers(dest="action", required=True)

        sub.add_parser("identity", help="print the detected operating system identity")

        p = sub.add_parser("list", help="list account names")
        p.add_argument("--include-system", action="store_true")

        p = sub.add_parser("show", help="print one account as JSON")
        p.add_argument("username")

        p = sub.add_parser("add", help="create an account")
        p.add_argument("username")
        p.add_argument("--home", default=None)

        p = sub.add_parser("delete", help="kill the account's processes and remove it")
        p.add_argument("username")

        for action, dest, help_text in (
            ("shell", "shell", "change the login shell"),
            ("password", "password", "set the password field to an already hashed value"),
            ("home", "home", "move the home directory"),
            ("groups", "groups", "replace supplementary groups (comma separated)"),
            ("comment", "comment", "change the GECOS comment"),
        ):
            p = sub.add_parser(action, help=help_text)
            p.add_argument("username")
            p.add_argument(dest)

    def handle(self, *args, **options):
        action = options["action"]
        try:
            if action == "identity":
                self.stdout.write(services.get_identity())
                return

            manager = services.get_user_manager()
            if action == "list":
                for name in manager.list_users(include_system=options["include_system"]):
                    self.stdout.write(name)
            elif action == "show":
                user = manager.get_user(options["username"])
                if user is None:
                    raise CommandError(f"user {options['username']} not found")
                self.stdout.write(json.dumps(user, indent=2))
            elif action == "add":
                self._write_output(manager.add_user(options["username"], options["home"]))
            elif action == "delete":
                self._write_output(manager.delete_user(options["username"]))
            else:
                operation = {
                    "shell": manager.change_shell,
                    "password": manager.change_password,
                    "home": manager.change_home_dir,
                    "groups": manager.change_groups,
                    "comment": manager.change_comment,
                }[action]
                self._write_output(operation(options["username"], options[action]))
        except (UnsupportedDistroError, HookCommandNotFoundError) as e:
            raise CommandError(f"configuration error: {e}")
        except CLICommandError as e:
            raise CommandError(f"{e}\n{e.output}".rstrip())
        except (OSError, ValueError) as e:
            raise CommandError(str(e))

        if action not in ("list", "show"):
            self.stdout.write(self.style.SUCCESS(f"{action}: done"))

    def _write_output(self, output):
        if output:
            self.stdout.write(output)
