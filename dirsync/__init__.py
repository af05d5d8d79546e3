"""
Directory Sync - Provision accounts and groups in an OpenLDAP directory.

This package drives the OpenLDAP administrative command-line tools to create,
update and delete directory entries, and keeps every new account in the
default group.
"""

__version__ = "1.0.0"
__author__ = "Directory Sync Team"
