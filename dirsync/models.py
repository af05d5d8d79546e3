"""
Request payloads handed to the directory synchronization service.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


@dataclass(frozen=True)
class AccountIdentity:
    """An account to be provisioned in the directory."""

    account_name: str
    full_name: str
    first_name: str
    last_name: str
    email: str
    password: Optional[str] = field(default=None, repr=False)
    is_admin: bool = False


@dataclass(frozen=True)
class GroupIdentity:
    name: str
    description: str = ''


class MemberKind(Enum):
    ACCOUNT = 'account'
    GROUP = 'group'


@dataclass(frozen=True)
class GroupMember:
    """A member of a group: either an account or another group."""

    kind: MemberKind
    name: str

    @classmethod
    def account(cls, name: str) -> 'GroupMember':
        return cls(MemberKind.ACCOUNT, name)

    @classmethod
    def group(cls, name: str) -> 'GroupMember':
        return cls(MemberKind.GROUP, name)

    @property
    def is_account(self) -> bool:
        return self.kind is MemberKind.ACCOUNT

    @property
    def is_group(self) -> bool:
        return self.kind is MemberKind.GROUP


@dataclass(frozen=True)
class CreatedAccount:
    """Result of a successful account creation."""

    account_name: str
    dn: str
    password: str = field(repr=False)
    password_generated: bool = False
    recreated: bool = False
