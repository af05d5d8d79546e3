"""
LDIF rendering for directory mutations.

Builders are pure string assembly. Any value that is not an RFC 2849 safe
string (line breaks, NUL, leading space, colon or '<', trailing space,
non-ASCII) is written base64 encoded, so a value can never start a new LDIF
line of its own.
"""

import base64
import re
from typing import Dict, Iterable, List, Sequence, Union

from ldap3.protocol.rfc2849 import safe_ldif_string

from dirsync.models import AccountIdentity, GroupIdentity

ACCOUNT_OBJECT_CLASSES = ('inetOrgPerson',)
GROUP_OBJECT_CLASSES = ('groupOfUniqueNames',)
MEMBER_ATTRIBUTE = 'uniqueMember'

_ATTRIBUTE_NAME = re.compile(r'^[A-Za-z][A-Za-z0-9-]*$')

AttributeValue = Union[str, Sequence[str]]


def ldif_line(attribute: str, value) -> str:
    """Render one 'attribute: value' line, base64 encoding unsafe values."""
    if not _ATTRIBUTE_NAME.match(attribute):
        raise ValueError(f"Invalid LDIF attribute name: {attribute!r}")

    raw = str(value).encode('utf-8')
    if safe_ldif_string(raw):
        return f"{attribute}: {raw.decode('utf-8')}"
    return f"{attribute}:: {base64.b64encode(raw).decode('ascii')}"


def _record(lines: Iterable[str]) -> str:
    return '\n'.join(lines) + '\n\n'


def _values(value: AttributeValue) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]


def create_entry(dn: str, object_classes: Sequence[str], attributes: Dict[str, AttributeValue]) -> str:
    """
    Render an add record for a new entry.

    Args:
        dn: DN of the new entry
        object_classes: objectClass values, one line each
        attributes: Attribute names mapped to a value or list of values

    Returns:
        LDIF text terminated by a blank line
    """
    lines = [ldif_line('dn', dn)]
    lines.extend(ldif_line('objectClass', object_class) for object_class in object_classes)
    for attribute, value in attributes.items():
        for item in _values(value):
            lines.append(ldif_line(attribute, item))
    return _record(lines)


def _modify(dn: str, operation: str, attribute: str, value) -> str:
    return _record([
        ldif_line('dn', dn),
        'changeType: modify',
        ldif_line(operation, attribute),
        ldif_line(attribute, value),
    ])


def modify_add(dn: str, attribute: str, value) -> str:
    return _modify(dn, 'add', attribute, value)


def modify_delete(dn: str, attribute: str, value) -> str:
    return _modify(dn, 'delete', attribute, value)


def modify_replace(dn: str, attribute: str, value) -> str:
    return _modify(dn, 'replace', attribute, value)


def account_entry(dn: str, identity: AccountIdentity, password: str) -> str:
    """Render the inetOrgPerson entry for a new account."""
    return create_entry(dn, ACCOUNT_OBJECT_CLASSES, {
        'uid': identity.account_name,
        'sn': identity.last_name,
        'givenName': identity.first_name,
        'cn': identity.full_name,
        'displayName': identity.full_name,
        'mail': identity.email,
        'userPassword': password,
    })


def group_entry(dn: str, group: GroupIdentity, member_dns: Sequence[str]) -> str:
    """Render the groupOfUniqueNames entry for a new group and its members."""
    attributes = {'cn': group.name}
    if group.description:
        attributes['description'] = group.description
    attributes[MEMBER_ATTRIBUTE] = list(member_dns)
    return create_entry(dn, GROUP_OBJECT_CLASSES, attributes)
