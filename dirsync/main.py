"""
Command-line front end for Directory Sync.

This module loads configuration, sets up logging and dispatches one directory
operation per invocation to the DirectorySyncService.
"""

import sys
import json
import shutil
import getpass
import logging
import argparse
from typing import Any, Dict, List, Optional

from dirsync.config import ConfigurationError, DirectoryConfig, load_config
from dirsync.exceptions import (
    BootstrapInconsistency,
    DirectoryOperationFailure,
    DirectorySyncError,
    LaunchFailure,
)
from dirsync.logging_setup import setup_logging
from dirsync.models import AccountIdentity, CreatedAccount, GroupIdentity, GroupMember
from dirsync.service import DirectorySyncService

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DIRECTORY_FAILURE = 1
EXIT_CONFIG_ERROR = 2
EXIT_LAUNCH_FAILURE = 3
EXIT_REJECTED = 4
EXIT_UNEXPECTED = 5


class DirectorySyncCLI:
    """
    Runs one directory operation from parsed command-line arguments.

    Args:
        config_path: Path to configuration file
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path
        self.config = None
        self.directory_config = None
        self.service = None

    def _load_configuration(self):
        """Load configuration, set up logging and build the service."""
        self.config = load_config(self.config_path)
        setup_logging(self.config.get('logging', {}))
        self.directory_config = DirectoryConfig.from_dict(self.config)
        self.service = DirectorySyncService(self.directory_config)

    def run(self, args: argparse.Namespace) -> int:
        """
        Execute the selected subcommand.

        Returns:
            Exit code (0 for success, non-zero for failure)
        """
        try:
            if self.service is None:
                self._load_configuration()
            return args.handler(self, args)

        except ConfigurationError as e:
            print(f"Configuration error: {e}", file=sys.stderr)
            return EXIT_CONFIG_ERROR
        except LaunchFailure as e:
            logger.error(f"Directory tool unavailable: {e}")
            print(f"Error: {e}", file=sys.stderr)
            return EXIT_LAUNCH_FAILURE
        except DirectoryOperationFailure as e:
            logger.error(f"{e}: {e.diagnostic.strip()}")
            print(f"Error: {e.public_message()}", file=sys.stderr)
            return EXIT_DIRECTORY_FAILURE
        except DirectorySyncError as e:
            logger.warning(f"Request rejected: {e}")
            print(f"Error: {e.public_message()}", file=sys.stderr)
            return EXIT_REJECTED
        except Exception as e:
            logger.error(f"Unexpected error: {e}", exc_info=True)
            print("Error: unexpected failure, see log for details", file=sys.stderr)
            return EXIT_UNEXPECTED

    # Subcommands

    def create_account(self, args) -> int:
        identity = AccountIdentity(
            account_name=args.name,
            full_name=args.full_name or f"{args.first_name} {args.last_name}",
            first_name=args.first_name,
            last_name=args.last_name,
            email=args.email,
            password=_read_password(args.password_prompt, "Password for new account: "),
            is_admin=args.admin
        )
        try:
            created = self.service.create_account(identity)
        except BootstrapInconsistency as e:
            # the entry exists, so creation is reported with a warning
            logger.error(f"{e}: {e.diagnostic.strip()}")
            _print_created(e.account)
            print(f"Warning: {args.name} is not a member of the default group "
                  f"{self.directory_config.default_group_name}", file=sys.stderr)
            return EXIT_OK
        _print_created(created)
        return EXIT_OK

    def delete_account(self, args) -> int:
        self.service.delete_account(args.name)
        print(f"Deleted account {args.name}")
        return EXIT_OK

    def create_group(self, args) -> int:
        group = GroupIdentity(name=args.name, description=args.description or '')
        members = _parse_members(args.account, args.group)
        self.service.create_group_with_members(group, members)
        print(f"Created group {args.name} with {len(members)} members")
        return EXIT_OK

    def update_group(self, args) -> int:
        self.service.update_group_description(GroupIdentity(name=args.name, description=args.description))
        print(f"Updated group {args.name}")
        return EXIT_OK

    def delete_group(self, args) -> int:
        self.service.delete_group(args.name)
        print(f"Deleted group {args.name}")
        return EXIT_OK

    def add_member(self, args) -> int:
        for member in _parse_members(args.account, args.group):
            self.service.add_member(args.name, member)
        print(f"Updated members of {args.name}")
        return EXIT_OK

    def remove_member(self, args) -> int:
        for member in _parse_members(args.account, args.group):
            self.service.remove_member(args.name, member)
        print(f"Updated members of {args.name}")
        return EXIT_OK

    def authenticate(self, args) -> int:
        self.service.authenticate(args.name, getpass.getpass("Password: "))
        print(f"Authenticated {args.name}")
        return EXIT_OK

    def change_password(self, args) -> int:
        old_password = getpass.getpass("Current password: ")
        new_password = _read_new_password()
        self.service.change_password(args.name, old_password, new_password)
        print(f"Changed password for {args.name}")
        return EXIT_OK

    def reset_password(self, args) -> int:
        self.service.admin_reset_password(args.name, _read_new_password())
        print(f"Reset password for {args.name}")
        return EXIT_OK

    def health_check(self, args) -> int:
        health_status = self.check_health()
        print(json.dumps(health_status, indent=2))
        return EXIT_OK if health_status['status'] == 'healthy' else EXIT_DIRECTORY_FAILURE

    def check_health(self) -> Dict[str, Any]:
        """
        Check that the directory tools are installed and the directory answers.

        Returns:
            Dictionary with overall status and per-check details
        """
        health_status = {'status': 'healthy', 'checks': {}}

        tools = {}
        for command in (self.directory_config.add_command, self.directory_config.modify_command,
                        self.directory_config.delete_command, self.directory_config.search_command,
                        self.directory_config.passwd_command):
            path = shutil.which(command)
            tools[command] = {
                'status': 'pass' if path else 'fail',
                'path': path
            }
            if not path:
                health_status['status'] = 'unhealthy'
        health_status['checks']['tools'] = tools

        group_name = self.directory_config.default_group_name
        try:
            exists = self.service.group_exists(group_name)
            health_status['checks']['default_group'] = {
                'status': 'pass',
                'message': f"Default group {group_name} {'exists' if exists else 'will be created on first account'}"
            }
        except LaunchFailure as e:
            health_status['checks']['default_group'] = {
                'status': 'fail',
                'message': str(e)
            }
            health_status['status'] = 'unhealthy'

        return health_status


def _print_created(created: CreatedAccount):
    print(f"Created {created.dn}")
    if created.password_generated:
        print(f"Generated password: {created.password}")


def _read_password(prompt: bool, text: str) -> Optional[str]:
    if not prompt:
        return None
    return getpass.getpass(text)


class PasswordMismatch(DirectorySyncError):
    """Raised when the repeated new password differs."""

    user_facing = True

    def __init__(self):
        super().__init__("Passwords do not match")


def _read_new_password() -> str:
    new_password = getpass.getpass("New password: ")
    if new_password != getpass.getpass("Repeat new password: "):
        raise PasswordMismatch()
    return new_password


def _parse_members(accounts: Optional[List[str]], groups: Optional[List[str]]) -> List[GroupMember]:
    members = [GroupMember.account(name) for name in accounts or []]
    members += [GroupMember.group(name) for name in groups or []]
    return members


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Directory Sync: manage accounts and groups in OpenLDAP')
    parser.add_argument('--config', '-c', help='Path to configuration file')
    subparsers = parser.add_subparsers(dest='command', required=True)

    create = subparsers.add_parser('create-account', help='Create an account and add it to the default group')
    create.add_argument('name')
    create.add_argument('--first-name', required=True)
    create.add_argument('--last-name', required=True)
    create.add_argument('--full-name')
    create.add_argument('--email', required=True)
    create.add_argument('--admin', action='store_true',
                        help='Admin provisioning: replace an existing entry')
    create.add_argument('--password-prompt', action='store_true',
                        help='Prompt for the password instead of generating one')
    create.set_defaults(handler=DirectorySyncCLI.create_account)

    delete = subparsers.add_parser('delete-account', help='Delete an account entry')
    delete.add_argument('name')
    delete.set_defaults(handler=DirectorySyncCLI.delete_account)

    group = subparsers.add_parser('create-group', help='Create a group with members')
    group.add_argument('name')
    group.add_argument('--description')
    group.add_argument('--account', action='append', help='Account member (repeatable)')
    group.add_argument('--group', action='append', help='Group member (repeatable)')
    group.set_defaults(handler=DirectorySyncCLI.create_group)

    update = subparsers.add_parser('update-group', help='Replace a group description')
    update.add_argument('name')
    update.add_argument('--description', required=True)
    update.set_defaults(handler=DirectorySyncCLI.update_group)

    delete_group = subparsers.add_parser('delete-group', help='Delete a group entry')
    delete_group.add_argument('name')
    delete_group.set_defaults(handler=DirectorySyncCLI.delete_group)

    for command, handler, text in (('add-member', DirectorySyncCLI.add_member, 'Add members to a group'),
                                   ('remove-member', DirectorySyncCLI.remove_member, 'Remove members from a group')):
        member = subparsers.add_parser(command, help=text)
        member.add_argument('name', help='Group name')
        member.add_argument('--account', action='append', help='Account member (repeatable)')
        member.add_argument('--group', action='append', help='Group member (repeatable)')
        member.set_defaults(handler=handler)

    for command, handler, text in (('authenticate', DirectorySyncCLI.authenticate, 'Check an account password'),
                                   ('change-password', DirectorySyncCLI.change_password, 'Change a password'),
                                   ('reset-password', DirectorySyncCLI.reset_password, 'Reset a password as admin')):
        sub = subparsers.add_parser(command, help=text)
        sub.add_argument('name', help='Account name')
        sub.set_defaults(handler=handler)

    health = subparsers.add_parser('health-check', help='Check tools and directory access')
    health.set_defaults(handler=DirectorySyncCLI.health_check)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point for the application."""
    args = build_parser().parse_args(argv)
    sys.exit(DirectorySyncCLI(config_path=args.config).run(args))


if __name__ == "__main__":
    main()
