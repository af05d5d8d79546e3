"""
Applies directory mutations through the OpenLDAP client tools.

Every tool invocation binds with simple authentication against the configured
server URI. The tools only report results as free-form text, so this module
classifies that text into a MutationOutcome once; callers never look at raw
tool output themselves.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from dirsync.command import CommandExecutor, CommandResult
from dirsync.config import DirectoryConfig
from dirsync.naming import DnNaming

logger = logging.getLogger(__name__)


class MutationKind(Enum):
    ADD = 'add'
    MODIFY = 'modify'
    DELETE = 'delete'


class MutationOutcome(Enum):
    SUCCESS = 'success'
    ALREADY_EXISTS = 'already-exists'
    INVALID_CREDENTIALS = 'invalid-credentials'
    NOT_FOUND = 'not-found'
    BOOTSTRAP_ERROR = 'bootstrap-error'
    OTHER_FAILURE = 'other-failure'


# Diagnostic text printed by the OpenLDAP tools, checked in this order.
DIAGNOSTIC_MARKERS = (
    ('Already exists', MutationOutcome.ALREADY_EXISTS),
    ('Invalid credentials', MutationOutcome.INVALID_CREDENTIALS),
    ('unwilling to verify old password', MutationOutcome.INVALID_CREDENTIALS),
    ('Type or value exists', MutationOutcome.ALREADY_EXISTS),
    ('No such object', MutationOutcome.NOT_FOUND),
    ('No such attribute', MutationOutcome.NOT_FOUND),
)

SEARCH_SUCCESS_MARKER = 'result: 0 Success'
SEARCH_COUNT_MARKER = 'numEntries: '

# ldappasswd binds as the administrator; this marker means the admin bind failed
ADMIN_BIND_FAILURE_MARKER = 'Invalid credentials'


@dataclass(frozen=True)
class DirectoryMutation:
    """One change to apply: LDIF for add/modify, just the DN for delete."""

    kind: MutationKind
    target_dn: str
    ldif: Optional[str] = None

    @classmethod
    def add(cls, target_dn: str, ldif: str) -> 'DirectoryMutation':
        return cls(MutationKind.ADD, target_dn, ldif)

    @classmethod
    def modify(cls, target_dn: str, ldif: str) -> 'DirectoryMutation':
        return cls(MutationKind.MODIFY, target_dn, ldif)

    @classmethod
    def delete(cls, target_dn: str) -> 'DirectoryMutation':
        return cls(MutationKind.DELETE, target_dn)


@dataclass(frozen=True)
class MutationResult:
    """Classified outcome together with the raw command result."""

    outcome: MutationOutcome
    result: CommandResult

    @property
    def ok(self) -> bool:
        return self.outcome is MutationOutcome.SUCCESS

    @property
    def diagnostic(self) -> str:
        return self.result.stderr

    @property
    def stdout(self) -> str:
        return self.result.stdout

    def retag(self, outcome: MutationOutcome) -> 'MutationResult':
        return MutationResult(outcome, self.result)


def _match_marker(result: CommandResult) -> Optional[str]:
    # stdout echoes entry data, so only stderr carries diagnostics
    for marker, _ in DIAGNOSTIC_MARKERS:
        if marker in result.stderr:
            return marker
    return None


def classify(result: CommandResult) -> MutationOutcome:
    """
    Classify raw tool output.

    Known diagnostics on stderr win over the exit status; a zero exit status
    with no known diagnostic is a success and anything else, including a
    timeout, is OTHER_FAILURE.
    """
    marker = _match_marker(result)
    if marker is not None:
        return dict(DIAGNOSTIC_MARKERS)[marker]
    if result.is_zero_exit_status and not result.timed_out:
        return MutationOutcome.SUCCESS
    return MutationOutcome.OTHER_FAILURE


def search_found_entries(result: MutationResult) -> bool:
    """
    True when a search both succeeded and reported at least one entry.

    Both markers are required; a failed search that still prints a count must
    not count as found.
    """
    if not result.ok or SEARCH_SUCCESS_MARKER not in result.stdout:
        return False
    for line in result.stdout.splitlines():
        _, marker, count = line.partition(SEARCH_COUNT_MARKER)
        if marker and count.strip().isdigit() and int(count.strip()) > 0:
            return True
    return False


class MutationRunner:
    """
    Runs ldapadd, ldapmodify, ldapdelete, ldapsearch and ldappasswd.

    Mutations bind as the directory administrator; searches may bind as any DN.
    """

    def __init__(self, config: DirectoryConfig, executor: Optional[CommandExecutor] = None):
        self.config = config
        self.naming = DnNaming(config)
        self.executor = executor or CommandExecutor(timeout=config.command_timeout)

    def _bind_args(self, bind_dn: Optional[str] = None, password: Optional[str] = None) -> List[str]:
        if bind_dn is None:
            bind_dn = self.naming.admin_dn()
            password = self.config.admin_password
        return ['-x', '-H', self.config.server_uri, '-D', bind_dn, '-w', password or '']

    def _finish(self, description: str, result: CommandResult) -> MutationResult:
        outcome = classify(result)
        if outcome is MutationOutcome.SUCCESS:
            logger.debug(f"{description}: success")
        else:
            logger.warning(f"{description}: {outcome.value} (exit status {result.exit_code})")
            if outcome is MutationOutcome.OTHER_FAILURE:
                logger.error(f"{description} diagnostic: {result.stderr.strip()}")
        return MutationResult(outcome, result)

    def apply(self, mutation: DirectoryMutation) -> MutationResult:
        """
        Apply one mutation as the administrator.

        Raises:
            LaunchFailure: If the tool cannot be started
        """
        if mutation.kind is MutationKind.ADD:
            command = self.config.add_command
            result = self.executor.run(command, self._bind_args(), stdin=mutation.ldif)
        elif mutation.kind is MutationKind.MODIFY:
            command = self.config.modify_command
            result = self.executor.run(command, self._bind_args(), stdin=mutation.ldif)
        elif mutation.kind is MutationKind.DELETE:
            command = self.config.delete_command
            result = self.executor.run(command, self._bind_args() + [mutation.target_dn])
        else:
            raise ValueError(f"Unsupported mutation kind: {mutation.kind}")

        return self._finish(f"{mutation.kind.value} {mutation.target_dn}", result)

    def search(self, search_filter: str, bind_dn: Optional[str] = None,
               password: Optional[str] = None, base: Optional[str] = None,
               scope: Optional[str] = None) -> MutationResult:
        """
        Run ldapsearch; raw output stays available on the returned result.

        Args:
            search_filter: LDAP filter expression
            bind_dn: DN to bind as, the administrator when None
            password: Password for bind_dn
            base: Search base, the configured base DN when None
            scope: Optional ldapsearch scope (base, one, sub)
        """
        args = self._bind_args(bind_dn, password)
        args += ['-b', base or self.config.base_dn]
        if scope:
            args += ['-s', scope]
        args.append(search_filter)

        result = self.executor.run(self.config.search_command, args)
        return self._finish(f"search {search_filter}", result)

    def change_password(self, target_dn: str, new_password: str,
                        old_password: Optional[str] = None) -> MutationResult:
        """
        Set a password with ldappasswd, bound as the administrator.

        When old_password is given the server verifies it before changing.
        Only a rejected old password is INVALID_CREDENTIALS; a rejected
        administrator bind is OTHER_FAILURE.
        """
        args = ['-x', '-H', self.config.server_uri]
        if old_password is not None:
            args += ['-a', old_password]
        args += ['-s', new_password,
                 '-D', self.naming.admin_dn(), '-w', self.config.admin_password,
                 target_dn]

        result = self.executor.run(self.config.passwd_command, args)
        finished = self._finish(f"passwd {target_dn}", result)
        if _match_marker(result) == ADMIN_BIND_FAILURE_MARKER:
            logger.error(f"passwd {target_dn}: administrator bind rejected")
            return finished.retag(MutationOutcome.OTHER_FAILURE)
        return finished
