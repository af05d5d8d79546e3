"""
Directory synchronization service.

This module turns account and group requests into directory mutations,
applies them through the MutationRunner and maps the classified outcomes onto
the exceptions in dirsync.exceptions. Each operation is independent; the only
multi-step flow is account creation, which re-creates an existing entry once
for admin provisioning and then joins the account to the default group.
"""

import logging
import secrets
from typing import Optional, Sequence

from dirsync import ldif
from dirsync.bootstrap import DefaultGroupBootstrapper
from dirsync.config import DirectoryConfig
from dirsync.exceptions import (
    AccountAlreadyExists,
    AuthenticationFailure,
    BootstrapInconsistency,
    DirectoryOperationFailure,
    EntryNotFound,
    GroupAlreadyExists,
    InvalidCredentials,
    InvalidMemberError,
)
from dirsync.logging_setup import security_logger
from dirsync.models import (
    AccountIdentity,
    CreatedAccount,
    GroupIdentity,
    GroupMember,
    MemberKind,
)
from dirsync.naming import DnNaming
from dirsync.runner import (
    DirectoryMutation,
    MutationOutcome,
    MutationResult,
    MutationRunner,
    search_found_entries,
)

logger = logging.getLogger(__name__)

# Bytes of randomness for generated account passwords
GENERATED_PASSWORD_BYTES = 18


class DirectorySyncService:
    """
    Creates, updates and deletes accounts and groups in the directory.

    Args:
        config: Immutable directory settings
        runner: Mutation runner, built from config when omitted
        bootstrapper: Default group bootstrapper, built from the runner when omitted
    """

    def __init__(self, config: DirectoryConfig, runner: Optional[MutationRunner] = None,
                 bootstrapper: Optional[DefaultGroupBootstrapper] = None):
        self.config = config
        self.runner = runner or MutationRunner(config)
        self.bootstrapper = bootstrapper or DefaultGroupBootstrapper(self.runner)
        self.naming = DnNaming(config)

    def _raise_for_failure(self, operation: str, target: str, result: MutationResult):
        if result.ok:
            return
        security_logger.log_directory_operation(operation, target, False)
        if result.outcome is MutationOutcome.NOT_FOUND:
            raise EntryNotFound(operation, target, result.outcome, result.diagnostic)
        raise DirectoryOperationFailure(operation, target, result.outcome, result.diagnostic)

    def _apply(self, operation: str, mutation: DirectoryMutation) -> MutationResult:
        result = self.runner.apply(mutation)
        self._raise_for_failure(operation, mutation.target_dn, result)
        security_logger.log_directory_operation(operation, mutation.target_dn, True)
        return result

    # Accounts

    def create_account(self, identity: AccountIdentity) -> CreatedAccount:
        """
        Create an account entry and add it to the default group.

        An existing entry is a conflict for ordinary requests. For admin
        provisioning the existing entry is deleted and the add is tried once
        more.

        Raises:
            AccountAlreadyExists: Entry exists and the request is not admin provisioning
            BootstrapInconsistency: Entry was created but the default group step
                failed; the exception carries the CreatedAccount
            DirectoryOperationFailure: Any other directory failure
        """
        account_name = identity.account_name
        password = identity.password
        generated = not password
        if generated:
            password = secrets.token_urlsafe(GENERATED_PASSWORD_BYTES)

        account_dn = self.naming.account_dn(account_name)
        mutation = DirectoryMutation.add(account_dn, ldif.account_entry(account_dn, identity, password))

        result = self.runner.apply(mutation)
        recreated = False
        if result.outcome is MutationOutcome.ALREADY_EXISTS:
            if not identity.is_admin:
                security_logger.log_directory_operation('create-account', account_dn, False)
                raise AccountAlreadyExists(account_name)

            logger.warning(f"Account {account_name} already exists, re-creating it for admin provisioning")
            self.delete_dn(account_dn)
            result = self.runner.apply(mutation)
            recreated = True

        self._raise_for_failure('create-account', account_dn, result)
        security_logger.log_directory_operation('create-account', account_dn, True)
        logger.info(f"Created account {account_name}{' (re-created)' if recreated else ''}")

        created = CreatedAccount(
            account_name=account_name,
            dn=account_dn,
            password=password,
            password_generated=generated,
            recreated=recreated
        )

        membership = self.bootstrapper.ensure_membership(account_name)
        if not membership.ok:
            group_dn = self.naming.group_dn(self.config.default_group_name)
            security_logger.log_directory_operation('ensure-default-group', account_dn, False)
            raise BootstrapInconsistency(account_name, group_dn, membership.outcome,
                                         membership.diagnostic, account=created)

        return created

    def delete_account(self, account_name: str) -> MutationResult:
        """
        Delete an account entry.

        Only the directory entry is removed; related principals in other
        systems are left to their owners.
        """
        return self.delete_dn(self.naming.account_dn(account_name))

    # Groups

    def _member_dn(self, group_name: str, member: GroupMember) -> str:
        if member.kind is MemberKind.ACCOUNT:
            return self.naming.account_dn(member.name)
        if member.kind is MemberKind.GROUP:
            if member.name == group_name:
                raise InvalidMemberError(f"Group cannot be member of itself: {group_name}")
            return self.naming.group_dn(member.name)
        raise InvalidMemberError(f"Invalid member type: {member.kind}")

    def _create_group(self, group: GroupIdentity, member_dns: Sequence[str]) -> MutationResult:
        group_dn = self.naming.group_dn(group.name)
        result = self.runner.apply(
            DirectoryMutation.add(group_dn, ldif.group_entry(group_dn, group, member_dns))
        )
        if result.outcome is MutationOutcome.ALREADY_EXISTS:
            security_logger.log_directory_operation('create-group', group_dn, False)
            raise GroupAlreadyExists('create-group', group_dn, result.outcome, result.diagnostic)
        self._raise_for_failure('create-group', group_dn, result)
        security_logger.log_directory_operation('create-group', group_dn, True)
        logger.info(f"Created group {group.name} with {len(member_dns)} members")
        return result

    def create_group_with_first_account(self, group: GroupIdentity, account_name: str) -> MutationResult:
        return self._create_group(group, [self.naming.account_dn(account_name)])

    def create_group_with_members(self, group: GroupIdentity, members: Sequence[GroupMember]) -> MutationResult:
        """
        Create a group whose entry lists all given members.

        Raises:
            InvalidMemberError: If the group is listed as its own member
            GroupAlreadyExists: If the group entry already exists
        """
        member_dns = [self._member_dn(group.name, member) for member in members]
        return self._create_group(group, member_dns)

    def update_group_description(self, group: GroupIdentity) -> MutationResult:
        group_dn = self.naming.group_dn(group.name)
        return self._apply('update-group', DirectoryMutation.modify(
            group_dn, ldif.modify_replace(group_dn, 'description', group.description)
        ))

    def delete_group(self, group_name: str) -> MutationResult:
        return self.delete_dn(self.naming.group_dn(group_name))

    def delete_dn(self, dn: str) -> MutationResult:
        return self._apply('delete', DirectoryMutation.delete(dn))

    def group_exists(self, group_name: str) -> bool:
        """Check for a group with an admin search; a failed search counts as absent."""
        return search_found_entries(self.runner.search(self.naming.group_filter(group_name)))

    # Membership

    def add_member(self, group_name: str, member: GroupMember) -> MutationResult:
        if member.kind is MemberKind.ACCOUNT:
            return self.add_account_to_group(group_name, member.name)
        if member.kind is MemberKind.GROUP:
            return self.add_group_to_group(group_name, member.name)
        raise InvalidMemberError(f"Invalid member type: {member.kind}")

    def remove_member(self, group_name: str, member: GroupMember) -> MutationResult:
        if member.kind is MemberKind.ACCOUNT:
            return self.remove_account_from_group(group_name, member.name)
        if member.kind is MemberKind.GROUP:
            return self.remove_group_from_group(group_name, member.name)
        raise InvalidMemberError(f"Invalid member type: {member.kind}")

    def add_account_to_group(self, group_name: str, account_name: str) -> MutationResult:
        return self.add_dn_to_group(group_name, self.naming.account_dn(account_name))

    def add_group_to_group(self, group_name: str, member_group: str) -> MutationResult:
        if member_group == group_name:
            raise InvalidMemberError(f"Group cannot be member of itself: {group_name}")
        return self.add_dn_to_group(group_name, self.naming.group_dn(member_group))

    def add_dn_to_group(self, group_name: str, dn: str) -> MutationResult:
        """Add a member DN; adding a DN that is already a member is not an error."""
        group_dn = self.naming.group_dn(group_name)
        result = self.runner.apply(DirectoryMutation.modify(
            group_dn, ldif.modify_add(group_dn, ldif.MEMBER_ATTRIBUTE, dn)
        ))
        if result.outcome is MutationOutcome.ALREADY_EXISTS:
            logger.info(f"{dn} is already a member of {group_name}")
            return result.retag(MutationOutcome.SUCCESS)
        self._raise_for_failure('add-member', group_dn, result)
        security_logger.log_directory_operation('add-member', group_dn, True)
        return result

    def remove_account_from_group(self, group_name: str, account_name: str) -> MutationResult:
        return self.remove_dn_from_group(group_name, self.naming.account_dn(account_name))

    def remove_group_from_group(self, group_name: str, member_group: str) -> MutationResult:
        return self.remove_dn_from_group(group_name, self.naming.group_dn(member_group))

    def remove_dn_from_group(self, group_name: str, dn: str) -> MutationResult:
        group_dn = self.naming.group_dn(group_name)
        return self._apply('remove-member', DirectoryMutation.modify(
            group_dn, ldif.modify_delete(group_dn, ldif.MEMBER_ATTRIBUTE, dn)
        ))

    # Credentials

    def authenticate(self, account_name: str, password: str) -> None:
        """
        Check a password by binding as the account itself.

        This is a secondary check; the primary credential check lives in the
        authentication service.

        Raises:
            AuthenticationFailure: Wrong password or unknown account
            DirectoryOperationFailure: The search failed for another reason
        """
        if not password:
            # an empty password would be an anonymous bind
            security_logger.log_authentication_attempt(account_name, False)
            raise AuthenticationFailure(account_name)

        account_dn = self.naming.account_dn(account_name)
        result = self.runner.search(
            '(objectClass=*)', bind_dn=account_dn, password=password, base=account_dn, scope='base'
        )
        if result.outcome in (MutationOutcome.INVALID_CREDENTIALS, MutationOutcome.NOT_FOUND):
            security_logger.log_authentication_attempt(account_name, False)
            raise AuthenticationFailure(account_name)
        self._raise_for_failure('authenticate', account_dn, result)
        security_logger.log_authentication_attempt(account_name, True)

    def change_password(self, account_name: str, old_password: str, new_password: str) -> MutationResult:
        """
        Change a password after the directory verifies the old one.

        Raises:
            InvalidCredentials: The old password is wrong
            DirectoryOperationFailure: The new password was rejected, e.g. by password policy
        """
        if not old_password:
            security_logger.log_password_change(account_name, False, False)
            raise InvalidCredentials(account_name, "Current password is incorrect")

        account_dn = self.naming.account_dn(account_name)
        result = self.runner.change_password(account_dn, new_password, old_password=old_password)
        if result.outcome is MutationOutcome.INVALID_CREDENTIALS:
            security_logger.log_password_change(account_name, False, False)
            raise InvalidCredentials(account_name, "Current password is incorrect")
        if not result.ok:
            security_logger.log_password_change(account_name, False, False)
        self._raise_for_failure('change-password', account_dn, result)
        security_logger.log_password_change(account_name, False, True)
        return result

    def admin_reset_password(self, account_name: str, new_password: str) -> MutationResult:
        account_dn = self.naming.account_dn(account_name)
        result = self.runner.change_password(account_dn, new_password)
        security_logger.log_password_change(account_name, True, result.ok)
        self._raise_for_failure('reset-password', account_dn, result)
        return result
