#!/usr/bin/env python3
"""
Installation check for Directory Sync.

Verifies that the Python dependencies and the dirsync modules import, and
that the OpenLDAP client tools the service drives can be found on PATH.
"""

import sys
import shutil
import importlib

PYTHON_DEPENDENCIES = [
    ("ldap3", "ldap3"),
    ("PyYAML", "yaml"),
]

DIRSYNC_MODULES = [
    "dirsync.config",
    "dirsync.logging_setup",
    "dirsync.command",
    "dirsync.naming",
    "dirsync.ldif",
    "dirsync.runner",
    "dirsync.bootstrap",
    "dirsync.service",
    "dirsync.main",
]

OPENLDAP_TOOLS = ["ldapadd", "ldapmodify", "ldapdelete", "ldapsearch", "ldappasswd"]


def can_import(module_name):
    """Return (ok, detail) for importing module_name."""
    try:
        importlib.import_module(module_name)
    except ImportError as e:
        return False, str(e)
    return True, "importable"


def report(title, results):
    """Print one section of results and return True when every entry passed."""
    print(f"\n=== {title} ===")
    for name, ok, detail in results:
        print(f"  {'✓' if ok else '✗'} {name}: {detail}")
    return all(ok for _, ok, _ in results)


def check_python_dependencies():
    return report("Python dependencies", [
        (distribution, *can_import(module)) for distribution, module in PYTHON_DEPENDENCIES
    ])


def check_dirsync_modules():
    return report("Directory Sync modules", [
        (module, *can_import(module)) for module in DIRSYNC_MODULES
    ])


def check_openldap_tools():
    results = []
    for tool in OPENLDAP_TOOLS:
        path = shutil.which(tool)
        results.append((tool, path is not None, path or "not found on PATH"))
    return report("OpenLDAP client tools", results)


def main():
    print("Directory Sync - installation check")
    print("=" * 50)

    passed = [check_python_dependencies(), check_dirsync_modules(), check_openldap_tools()]

    if all(passed):
        print("\n✓ Installation looks complete.")
        print("  Next: write config.yaml (see config.example.yaml) and run 'dirsync health-check'.")
        return 0

    print("\n✗ Installation is incomplete; fix the entries marked ✗ above.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
