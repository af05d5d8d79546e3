#!/usr/bin/env python3
"""
Unit tests for the command-line front end.

The service is mocked; these tests check argument handling and the mapping
of failures onto exit codes and client-safe messages.
"""

import io
import os
import sys
import unittest
from unittest.mock import Mock, patch

# Add the project directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dirsync.config import DirectoryConfig
from dirsync.exceptions import (
    AccountAlreadyExists,
    BootstrapInconsistency,
    DirectoryOperationFailure,
    InvalidMemberError,
    LaunchFailure,
)
from dirsync.main import (
    EXIT_CONFIG_ERROR,
    EXIT_DIRECTORY_FAILURE,
    EXIT_LAUNCH_FAILURE,
    EXIT_OK,
    EXIT_REJECTED,
    EXIT_UNEXPECTED,
    DirectorySyncCLI,
    _parse_members,
    build_parser,
    main,
)
from dirsync.models import CreatedAccount, GroupIdentity, GroupMember
from dirsync.service import DirectorySyncService

CONFIG = DirectoryConfig(
    base_dn='dc=example,dc=com',
    domain='dc=example,dc=com',
    admin_password='adminpw'
)


class TestDirectorySyncCLI(unittest.TestCase):
    """Test cases for subcommand dispatch and exit codes."""

    def setUp(self):
        self.cli = DirectorySyncCLI()
        self.cli.directory_config = CONFIG
        self.cli.service = Mock(spec=DirectorySyncService)
        self.parser = build_parser()

    def _run(self, *argv):
        args = self.parser.parse_args(list(argv))
        with patch('sys.stdout', new_callable=io.StringIO) as stdout, \
                patch('sys.stderr', new_callable=io.StringIO) as stderr:
            code = self.cli.run(args)
        return code, stdout.getvalue(), stderr.getvalue()

    def test_create_account_with_generated_password(self):
        self.cli.service.create_account.return_value = CreatedAccount(
            account_name='alice', dn='uid=alice,ou=People,dc=example,dc=com',
            password='generated-secret', password_generated=True
        )

        code, stdout, _ = self._run('create-account', 'alice', '--first-name', 'Alice',
                                    '--last-name', 'Liddell', '--email', 'alice@example.com')

        self.assertEqual(code, EXIT_OK)
        identity = self.cli.service.create_account.call_args.args[0]
        self.assertEqual(identity.full_name, 'Alice Liddell')
        self.assertIsNone(identity.password)
        self.assertFalse(identity.is_admin)
        self.assertIn('generated-secret', stdout)

    def test_create_account_reports_entry_when_default_group_step_fails(self):
        created = CreatedAccount(
            account_name='alice', dn='uid=alice,ou=People,dc=example,dc=com',
            password='generated-secret', password_generated=True
        )
        self.cli.service.create_account.side_effect = BootstrapInconsistency(
            'alice', 'cn=cloudos-users,ou=Groups,dc=example,dc=com', None,
            'ldap_add: Other (e.g., implementation specific) error (80)', account=created
        )

        code, stdout, stderr = self._run('create-account', 'alice', '--first-name', 'Alice',
                                         '--last-name', 'Liddell', '--email', 'alice@example.com')

        self.assertEqual(code, EXIT_OK)
        self.assertIn('Created uid=alice,ou=People,dc=example,dc=com', stdout)
        self.assertIn('generated-secret', stdout)
        self.assertIn('not a member of the default group cloudos-users', stderr)
        self.assertNotIn('implementation specific', stderr)

    def test_create_account_conflict_is_rejected(self):
        self.cli.service.create_account.side_effect = AccountAlreadyExists('alice')

        code, _, stderr = self._run('create-account', 'alice', '--first-name', 'Alice',
                                    '--last-name', 'Liddell', '--email', 'alice@example.com', '--admin')

        self.assertEqual(code, EXIT_REJECTED)
        self.assertIn('Account already exists: alice', stderr)
        self.assertTrue(self.cli.service.create_account.call_args.args[0].is_admin)

    def test_directory_failure_hides_diagnostic(self):
        self.cli.service.delete_account.side_effect = DirectoryOperationFailure(
            'delete', 'uid=alice,ou=People,dc=example,dc=com', None,
            'ldap_delete: Insufficient access (50)'
        )

        code, _, stderr = self._run('delete-account', 'alice')

        self.assertEqual(code, EXIT_DIRECTORY_FAILURE)
        self.assertIn('Directory operation failed', stderr)
        self.assertNotIn('Insufficient access', stderr)

    def test_launch_failure(self):
        self.cli.service.delete_group.side_effect = LaunchFailure('ldapdelete', FileNotFoundError('ldapdelete'))

        code, _, _ = self._run('delete-group', 'staff')

        self.assertEqual(code, EXIT_LAUNCH_FAILURE)

    def test_invalid_member_is_rejected(self):
        self.cli.service.add_member.side_effect = InvalidMemberError('Group cannot be member of itself: staff')

        code, _, stderr = self._run('add-member', 'staff', '--group', 'staff')

        self.assertEqual(code, EXIT_REJECTED)
        self.assertIn('member of itself', stderr)

    def test_unexpected_error(self):
        self.cli.service.delete_account.side_effect = RuntimeError('boom')

        code, _, stderr = self._run('delete-account', 'alice')

        self.assertEqual(code, EXIT_UNEXPECTED)
        self.assertNotIn('boom', stderr)

    def test_create_group_with_members(self):
        code, _, _ = self._run('create-group', 'staff', '--description', 'All staff',
                               '--account', 'alice', '--account', 'bob', '--group', 'admins')

        self.assertEqual(code, EXIT_OK)
        self.cli.service.create_group_with_members.assert_called_once_with(
            GroupIdentity('staff', 'All staff'),
            [GroupMember.account('alice'), GroupMember.account('bob'), GroupMember.group('admins')]
        )

    def test_update_group(self):
        code, _, _ = self._run('update-group', 'staff', '--description', 'Everyone')

        self.assertEqual(code, EXIT_OK)
        self.cli.service.update_group_description.assert_called_once_with(GroupIdentity('staff', 'Everyone'))

    def test_remove_member(self):
        code, _, _ = self._run('remove-member', 'staff', '--account', 'alice')

        self.assertEqual(code, EXIT_OK)
        self.cli.service.remove_member.assert_called_once_with('staff', GroupMember.account('alice'))

    @patch('dirsync.main.getpass.getpass')
    def test_change_password(self, mock_getpass):
        mock_getpass.side_effect = ['old-secret', 'new-secret', 'new-secret']

        code, _, _ = self._run('change-password', 'alice')

        self.assertEqual(code, EXIT_OK)
        self.cli.service.change_password.assert_called_once_with('alice', 'old-secret', 'new-secret')

    @patch('dirsync.main.getpass.getpass')
    def test_reset_password_mismatch(self, mock_getpass):
        mock_getpass.side_effect = ['new-secret', 'typo-secret']

        code, _, stderr = self._run('reset-password', 'alice')

        self.assertEqual(code, EXIT_REJECTED)
        self.assertIn('Passwords do not match', stderr)
        self.cli.service.admin_reset_password.assert_not_called()

    @patch('dirsync.main.getpass.getpass')
    def test_authenticate(self, mock_getpass):
        mock_getpass.return_value = 'wonderland'

        code, _, _ = self._run('authenticate', 'alice')

        self.assertEqual(code, EXIT_OK)
        self.cli.service.authenticate.assert_called_once_with('alice', 'wonderland')

    @patch('dirsync.main.shutil.which')
    def test_health_check(self, mock_which):
        mock_which.side_effect = lambda command: f'/usr/bin/{command}'
        self.cli.service.group_exists.return_value = True

        health = self.cli.check_health()

        self.assertEqual(health['status'], 'healthy')
        self.assertEqual(health['checks']['tools']['ldapsearch']['path'], '/usr/bin/ldapsearch')
        self.cli.service.group_exists.assert_called_once_with('cloudos-users')

    @patch('dirsync.main.shutil.which')
    def test_health_check_missing_tool(self, mock_which):
        mock_which.side_effect = lambda command: None if command == 'ldappasswd' else f'/usr/bin/{command}'
        self.cli.service.group_exists.return_value = False

        code, stdout, _ = self._run('health-check')

        self.assertEqual(code, EXIT_DIRECTORY_FAILURE)
        self.assertIn('unhealthy', stdout)

    @patch('dirsync.main.shutil.which')
    def test_health_check_unreachable_directory(self, mock_which):
        mock_which.return_value = '/usr/bin/tool'
        self.cli.service.group_exists.side_effect = LaunchFailure('ldapsearch', OSError('exec format error'))

        health = self.cli.check_health()

        self.assertEqual(health['status'], 'unhealthy')
        self.assertEqual(health['checks']['default_group']['status'], 'fail')


class TestEntryPoint(unittest.TestCase):

    def test_missing_config_file(self):
        args = build_parser().parse_args(['--config', '/nonexistent/config.yaml', 'health-check'])

        with patch('sys.stderr', new_callable=io.StringIO) as stderr:
            code = DirectorySyncCLI(config_path=args.config).run(args)

        self.assertEqual(code, EXIT_CONFIG_ERROR)
        self.assertIn('Configuration error', stderr.getvalue())

    @patch('dirsync.main.DirectorySyncCLI.run')
    def test_main_exits_with_run_code(self, mock_run):
        mock_run.return_value = EXIT_REJECTED

        with self.assertRaises(SystemExit) as ctx:
            main(['delete-account', 'alice'])

        self.assertEqual(ctx.exception.code, EXIT_REJECTED)

    def test_subcommand_is_required(self):
        with patch('sys.stderr', new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                build_parser().parse_args([])

    def test_parse_members(self):
        self.assertEqual(_parse_members(['alice'], None), [GroupMember.account('alice')])
        self.assertEqual(_parse_members(None, ['admins']), [GroupMember.group('admins')])
        self.assertEqual(_parse_members(None, None), [])


if __name__ == '__main__':
    unittest.main()
