"""
Keeps every new account in the well-known default group.
"""

import logging

from dirsync import ldif
from dirsync.models import GroupIdentity
from dirsync.naming import DnNaming
from dirsync.runner import (
    DirectoryMutation,
    MutationKind,
    MutationOutcome,
    MutationResult,
    MutationRunner,
    search_found_entries,
)

logger = logging.getLogger(__name__)


class DefaultGroupBootstrapper:
    """
    Adds accounts to the default group, creating the group on first use.

    There is no compensating action: if the group step fails the caller gets a
    BOOTSTRAP_ERROR result and the account entry stays as it is.
    """

    def __init__(self, runner: MutationRunner):
        self.runner = runner
        self.naming = DnNaming(runner.config)
        self.group = GroupIdentity(
            name=runner.config.default_group_name,
            description=runner.config.default_group_description
        )

    def group_exists(self) -> bool:
        result = self.runner.search(self.naming.group_filter(self.group.name))
        return search_found_entries(result)

    def ensure_membership(self, account_name: str) -> MutationResult:
        """
        Put an account into the default group.

        Args:
            account_name: Name of an account whose entry already exists

        Returns:
            The group mutation result, re-tagged BOOTSTRAP_ERROR on failure
        """
        group_dn = self.naming.group_dn(self.group.name)
        account_dn = self.naming.account_dn(account_name)

        if not self.group_exists():
            logger.info(f"Default group {self.group.name} not found, creating it with {account_name}")
            mutation = DirectoryMutation.add(
                group_dn, ldif.group_entry(group_dn, self.group, [account_dn])
            )
        else:
            logger.debug(f"Adding {account_name} to default group {self.group.name}")
            mutation = DirectoryMutation.modify(
                group_dn, ldif.modify_add(group_dn, ldif.MEMBER_ATTRIBUTE, account_dn)
            )

        result = self.runner.apply(mutation)
        if result.ok:
            return result
        if mutation.kind is MutationKind.MODIFY and result.outcome is MutationOutcome.ALREADY_EXISTS:
            # re-provisioned accounts keep their old membership value
            logger.info(f"{account_name} is already a member of {self.group.name}")
            return result.retag(MutationOutcome.SUCCESS)

        logger.error(f"Could not add {account_name} to default group {self.group.name}: "
                     f"{result.outcome.value}")
        return result.retag(MutationOutcome.BOOTSTRAP_ERROR)
