#!/usr/bin/env python3
"""
Unit tests for distinguished name construction.
"""

import os
import sys
import unittest

# Add the project directory to the path so we can import our modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dirsync.config import DirectoryConfig
from dirsync.naming import DnNaming


class TestDnNaming(unittest.TestCase):

    def setUp(self):
        self.naming = DnNaming(DirectoryConfig(
            base_dn='dc=example,dc=com',
            domain='dc=example,dc=org',
            admin_password='adminpw'
        ))

    def test_account_and_group_dns(self):
        self.assertEqual(self.naming.account_dn('alice'), 'uid=alice,ou=People,dc=example,dc=com')
        self.assertEqual(self.naming.group_dn('staff'), 'cn=staff,ou=Groups,dc=example,dc=com')

    def test_admin_dn_uses_domain(self):
        self.assertEqual(self.naming.admin_dn(), 'cn=admin,dc=example,dc=org')

    def test_same_name_gives_distinct_account_and_group_dns(self):
        self.assertNotEqual(self.naming.account_dn('alice'), self.naming.group_dn('alice'))

    def test_dns_are_stable(self):
        self.assertEqual(self.naming.account_dn('bob'), self.naming.account_dn('bob'))
        self.assertEqual(self.naming.group_dn('ops'), self.naming.group_dn('ops'))

    def test_special_characters_are_escaped(self):
        dn = self.naming.account_dn('evil,ou=Admins')
        self.assertEqual(dn, r'uid=evil\,ou\=Admins,ou=People,dc=example,dc=com')

        dn = self.naming.group_dn('a+b')
        self.assertEqual(dn, r'cn=a\+b,ou=Groups,dc=example,dc=com')

    def test_group_filter(self):
        self.assertEqual(self.naming.group_filter(), '(objectClass=groupOfUniqueNames)')
        self.assertEqual(self.naming.group_filter('cloudos-users'),
                         '(&(objectClass=groupOfUniqueNames)(cn=cloudos-users))')

    def test_group_filter_escapes_value(self):
        self.assertEqual(self.naming.group_filter('x)(cn=*'),
                         r'(&(objectClass=groupOfUniqueNames)(cn=x\29\28cn=\2a))')


if __name__ == '__main__':
    unittest.main()
