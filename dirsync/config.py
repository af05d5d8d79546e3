"""
Configuration for Directory Sync.

Settings come from a YAML file, secrets may be supplied through environment
variables, and the result is checked and completed with defaults. The loaded
mapping is turned into an immutable DirectoryConfig that is handed to every
component at construction time.
"""

import os
import yaml
import logging
from dataclasses import dataclass, field
from typing import Dict, Any, List, Optional

logger = logging.getLogger(__name__)


DEFAULT_GROUP_NAME = 'cloudos-users'
DEFAULT_GROUP_DESCRIPTION = 'Default group for all accounts'

DEFAULT_TOOLS = {
    'add': 'ldapadd',
    'modify': 'ldapmodify',
    'delete': 'ldapdelete',
    'search': 'ldapsearch',
    'passwd': 'ldappasswd',
}

LOGGING_DEFAULTS = {
    'level': 'INFO',
    'log_dir': 'logs',
    'rotation': 'daily',
    'retention_days': 7,
}


class ConfigurationError(Exception):
    """Raised when the configuration file is missing, unreadable or invalid."""
    pass


class ConfigLoader:
    """Reads, overrides, validates and completes the configuration file."""

    # Dotted config key -> environment variable that replaces it
    ENV_OVERRIDES = {
        'directory.admin_password': 'LDAP_ADMIN_PASSWORD',
    }

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: YAML file to read; defaults to $DIRSYNC_CONFIG, then 'config.yaml'
        """
        self.config_path = config_path or os.getenv('DIRSYNC_CONFIG', 'config.yaml')
        self.config = {}

    def load(self) -> Dict[str, Any]:
        """
        Read the configuration file.

        Returns:
            Configuration dictionary with environment overrides and defaults applied

        Raises:
            ConfigurationError: If the file is missing, is not YAML or fails validation
        """
        self.config = self._read()
        self._apply_env_overrides()
        self._check(self._problems())
        self._apply_defaults()

        logger.info(f"Loaded configuration from {self.config_path}")
        return self.config

    def _read(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r') as f:
                content = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {self.config_path}: {e}")

        if content is None:
            return {}
        if not isinstance(content, dict):
            raise ConfigurationError(f"Configuration root must be a mapping: {self.config_path}")
        return content

    def _apply_env_overrides(self):
        for dotted_key, env_var in self.ENV_OVERRIDES.items():
            value = os.getenv(env_var)
            if not value:
                continue
            *parents, leaf = dotted_key.split('.')
            section = self.config
            for name in parents:
                if not isinstance(section.get(name), dict):
                    section[name] = {}
                section = section[name]
            section[leaf] = value
            logger.debug(f"{dotted_key} taken from ${env_var}")

    def _problems(self) -> List[str]:
        """Collect every validation problem instead of stopping at the first."""
        problems = []

        directory = self.config.get('directory')
        if not isinstance(directory, dict):
            problems.append("Missing required section: directory")
            directory = {}

        problems.extend(f"Missing required directory field: {name}"
                        for name in ('base_dn', 'domain', 'admin_password') if not directory.get(name))

        timeout = directory.get('command_timeout')
        if timeout is not None and (isinstance(timeout, bool) or not isinstance(timeout, (int, float))
                                    or timeout < 0):
            problems.append("directory.command_timeout must be a non-negative number")

        tools = directory.get('tools', {})
        if not isinstance(tools, dict):
            problems.append("directory.tools must be a mapping")
        else:
            problems.extend(f"Unknown directory tool: {name}" for name in tools if name not in DEFAULT_TOOLS)

        default_group = self.config.get('default_group', {})
        if default_group and not isinstance(default_group, dict):
            problems.append("default_group must be a mapping")
        elif default_group and 'name' in default_group and not default_group['name']:
            problems.append("default_group.name must not be empty")

        return problems

    @staticmethod
    def _check(problems: List[str]):
        if problems:
            details = "\n".join(f"  - {problem}" for problem in problems)
            raise ConfigurationError(f"Configuration validation failed:\n{details}")

    def _apply_defaults(self):
        directory = self.config.setdefault('directory', {})
        directory.setdefault('server_uri', 'ldapi:///')
        directory.setdefault('command_timeout', 30)
        tools = directory.setdefault('tools', {})
        for name, command in DEFAULT_TOOLS.items():
            tools.setdefault(name, command)

        default_group = self.config.setdefault('default_group', {})
        default_group.setdefault('name', DEFAULT_GROUP_NAME)
        default_group.setdefault('description', DEFAULT_GROUP_DESCRIPTION)

        logging_section = self.config.setdefault('logging', {})
        for name, value in LOGGING_DEFAULTS.items():
            logging_section.setdefault(name, value)


@dataclass(frozen=True)
class DirectoryConfig:
    """Read-only directory settings shared by all components."""

    base_dn: str
    domain: str
    admin_password: str = field(repr=False)
    server_uri: str = 'ldapi:///'
    command_timeout: Optional[float] = 30
    add_command: str = 'ldapadd'
    modify_command: str = 'ldapmodify'
    delete_command: str = 'ldapdelete'
    search_command: str = 'ldapsearch'
    passwd_command: str = 'ldappasswd'
    default_group_name: str = DEFAULT_GROUP_NAME
    default_group_description: str = DEFAULT_GROUP_DESCRIPTION

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'DirectoryConfig':
        """
        Build directory settings from a loaded configuration dictionary.

        Args:
            config: Full configuration as returned by ConfigLoader.load()
        """
        directory = config.get('directory', {})
        tools = dict(DEFAULT_TOOLS)
        tools.update(directory.get('tools') or {})
        group_config = config.get('default_group') or {}

        return cls(
            base_dn=directory['base_dn'],
            domain=directory['domain'],
            admin_password=directory['admin_password'],
            server_uri=directory.get('server_uri', 'ldapi:///'),
            command_timeout=directory.get('command_timeout', 30) or None,
            add_command=tools['add'],
            modify_command=tools['modify'],
            delete_command=tools['delete'],
            search_command=tools['search'],
            passwd_command=tools['passwd'],
            default_group_name=group_config.get('name', DEFAULT_GROUP_NAME),
            default_group_description=group_config.get('description', DEFAULT_GROUP_DESCRIPTION),
        )


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load, validate and complete the configuration file at config_path."""
    return ConfigLoader(config_path).load()


def load_directory_config(config_path: Optional[str] = None) -> DirectoryConfig:
    """Load the configuration file and return the directory settings."""
    return DirectoryConfig.from_dict(load_config(config_path))
