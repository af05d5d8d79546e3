"""
Distinguished names for accounts, groups and the directory administrator.
"""

from ldap3.utils.conv import escape_filter_chars
from ldap3.utils.dn import escape_rdn

from dirsync.config import DirectoryConfig

GROUP_OBJECT_CLASS = 'groupOfUniqueNames'


def _rdn_value(name: str) -> str:
    # escape_rdn cannot handle an empty value
    return escape_rdn(name) if name else name


class DnNaming:
    """Maps account and group names to their DNs under the configured base."""

    def __init__(self, config: DirectoryConfig):
        self.base_dn = config.base_dn
        self.domain = config.domain

    def account_dn(self, account_name: str) -> str:
        return f"uid={_rdn_value(account_name)},ou=People,{self.base_dn}"

    def group_dn(self, group_name: str) -> str:
        return f"cn={_rdn_value(group_name)},ou=Groups,{self.base_dn}"

    def admin_dn(self) -> str:
        return f"cn=admin,{self.domain}"

    def group_filter(self, group_name: str = '') -> str:
        """Search filter for one group, or for every group when no name is given."""
        if not group_name:
            return f"(objectClass={GROUP_OBJECT_CLASS})"
        return f"(&(objectClass={GROUP_OBJECT_CLASS})(cn={escape_filter_chars(group_name)}))"
