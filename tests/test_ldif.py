#!/usr/bin/env python3
"""
Unit tests for LDIF rendering.
"""

import os
import sys
import base64
import unittest

# Add the project directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dirsync import ldif
from dirsync.models import AccountIdentity, GroupIdentity

ALICE_DN = 'uid=alice,ou=People,dc=example,dc=com'
STAFF_DN = 'cn=staff,ou=Groups,dc=example,dc=com'


class TestLdifLine(unittest.TestCase):

    def test_plain_value(self):
        self.assertEqual(ldif.ldif_line('mail', 'alice@example.com'), 'mail: alice@example.com')

    def test_unsafe_values_are_base64(self):
        for value in ('two\nlines', ' leading space', 'trailing space ', ':colon', '<url', 'Zoë'):
            line = ldif.ldif_line('cn', value)
            self.assertTrue(line.startswith('cn:: '), value)
            decoded = base64.b64decode(line[len('cn:: '):]).decode('utf-8')
            self.assertEqual(decoded, value)
            self.assertNotIn('\n', line)

    def test_invalid_attribute_name(self):
        for attribute in ('', 'bad name', 'x\nuid', '1cn'):
            with self.assertRaises(ValueError):
                ldif.ldif_line(attribute, 'value')


class TestRecords(unittest.TestCase):

    def test_account_entry(self):
        identity = AccountIdentity(
            account_name='alice',
            full_name='Alice Liddell',
            first_name='Alice',
            last_name='Liddell',
            email='alice@example.com'
        )

        self.assertEqual(ldif.account_entry(ALICE_DN, identity, 'wonderland'), (
            f'dn: {ALICE_DN}\n'
            'objectClass: inetOrgPerson\n'
            'uid: alice\n'
            'sn: Liddell\n'
            'givenName: Alice\n'
            'cn: Alice Liddell\n'
            'displayName: Alice Liddell\n'
            'mail: alice@example.com\n'
            'userPassword: wonderland\n'
            '\n'
        ))

    def test_group_entry_lists_every_member(self):
        text = ldif.group_entry(STAFF_DN, GroupIdentity('staff', 'All staff'),
                                [ALICE_DN, 'cn=admins,ou=Groups,dc=example,dc=com'])

        self.assertEqual(text, (
            f'dn: {STAFF_DN}\n'
            'objectClass: groupOfUniqueNames\n'
            'cn: staff\n'
            'description: All staff\n'
            f'uniqueMember: {ALICE_DN}\n'
            'uniqueMember: cn=admins,ou=Groups,dc=example,dc=com\n'
            '\n'
        ))

    def test_group_entry_without_description(self):
        text = ldif.group_entry(STAFF_DN, GroupIdentity('staff'), [ALICE_DN])
        self.assertNotIn('description', text)

    def test_modify_records(self):
        for builder, operation in ((ldif.modify_add, 'add'),
                                   (ldif.modify_delete, 'delete'),
                                   (ldif.modify_replace, 'replace')):
            self.assertEqual(builder(STAFF_DN, 'uniqueMember', ALICE_DN), (
                f'dn: {STAFF_DN}\n'
                'changeType: modify\n'
                f'{operation}: uniqueMember\n'
                f'uniqueMember: {ALICE_DN}\n'
                '\n'
            ))

    def test_records_end_with_blank_line(self):
        text = ldif.create_entry(STAFF_DN, ldif.GROUP_OBJECT_CLASSES, {'cn': 'staff'})
        self.assertTrue(text.endswith('\n\n'))
        self.assertFalse(text.endswith('\n\n\n'))

    def test_injected_line_stays_inside_value(self):
        text = ldif.modify_replace(STAFF_DN, 'description', 'x\nuniqueMember: cn=root')
        lines = text.splitlines()
        self.assertFalse(any(line.startswith('uniqueMember') for line in lines))
        self.assertEqual(len([line for line in lines if line]), 4)


if __name__ == '__main__':
    unittest.main()
