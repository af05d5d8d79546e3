"""
Logging setup and configuration for Directory Sync.

This module provides centralized logging configuration with file rotation,
retention and console output, plus a filter that keeps bind passwords and
userPassword values out of the logs.
"""

import os
import re
import glob
import logging
import logging.handlers
from typing import Dict, Any
from datetime import datetime, timedelta


LOG_FILE_NAME = 'dirsync.log'


class SensitiveDataFilter(logging.Filter):
    """Filter to scrub passwords from log messages."""

    SENSITIVE_KEYWORDS = [
        'password', 'admin_password', 'old_password', 'new_password',
        'secret', 'credential', 'pass', 'pwd'
    ]

    # Password-bearing flags of the OpenLDAP client tools
    SENSITIVE_FLAGS = ['-w', '-a', '-s']

    def filter(self, record):
        """Filter out sensitive data from log records."""
        if getattr(record, 'args', None):
            record.msg = self.scrub(record.getMessage())
            record.args = None
        elif hasattr(record, 'msg'):
            record.msg = self.scrub(str(record.msg))
        return True

    def scrub(self, msg: str) -> str:
        for keyword in self.SENSITIVE_KEYWORDS:
            msg = re.sub(rf'({keyword}\s*=\s*)[^\s,}}\]]+', r'\1****', msg, flags=re.IGNORECASE)
            msg = re.sub(rf"(['\"]{keyword}['\"]\s*:\s*['\"])[^'\"]*(['\"])", r'\1****\2', msg, flags=re.IGNORECASE)

        # LDIF attribute lines, plain or base64
        msg = re.sub(r'(userPassword::?\s*)\S+', r'\1****', msg, flags=re.IGNORECASE)

        # Command line flags followed by a secret, as in "-w secret" or "'-w', 'secret'"
        for flag in self.SENSITIVE_FLAGS:
            msg = re.sub(rf"((?:^|\s){flag}\s+)\S+", r'\1****', msg)
            msg = re.sub(rf"(['\"]{flag}['\"],\s*['\"])[^'\"]*(['\"])", r'\1****\2', msg)
        return msg


class LoggingManager:
    """
    Installs the root handlers for Directory Sync once per process.

    The file handler rotates at midnight and keeps ``retention_days`` old
    files; a console handler is added unless ``console_output`` is false.
    Both handlers carry a SensitiveDataFilter.
    """

    FILE_FORMAT = '%(asctime)s %(levelname)-8s %(name)s:%(lineno)d %(message)s'
    CONSOLE_FORMAT = '%(levelname)s %(message)s'

    def __init__(self):
        self.configured = False
        self.log_dir = None
        self.retention_days = 7

    def setup_logging(self, config: Dict[str, Any]) -> None:
        """
        Configure the root logger from the ``logging`` configuration section.

        Args:
            config: Logging section of the loaded configuration, may be empty
        """
        if self.configured:
            return

        settings = config or {}
        level = self._level(settings.get('level'), logging.INFO)
        self.log_dir = settings.get('log_dir', 'logs')
        self.retention_days = settings.get('retention_days', 7)

        self._prepare_log_dir()
        handlers = [self._file_handler(settings.get('rotation', 'daily'), level)]
        if settings.get('console_output', True):
            handlers.append(self._console_handler(self._level(settings.get('console_level'), logging.WARNING)))

        scrubber = SensitiveDataFilter()
        root = logging.getLogger()
        root.handlers.clear()
        root.setLevel(level)
        for handler in handlers:
            handler.addFilter(scrubber)
            root.addHandler(handler)

        self._remove_expired_logs()
        self.configured = True

        logging.getLogger(__name__).info(
            f"Logging to {os.path.join(self.log_dir, LOG_FILE_NAME)} at {logging.getLevelName(level)}, "
            f"keeping {self.retention_days} days"
        )

    @staticmethod
    def _level(name, default: int) -> int:
        if not name:
            return default
        return getattr(logging, str(name).upper(), default)

    def _prepare_log_dir(self) -> None:
        if not self.log_dir or os.path.isdir(self.log_dir):
            return
        try:
            os.makedirs(self.log_dir, exist_ok=True)
        except OSError as e:
            print(f"Warning: cannot create log directory {self.log_dir} ({e}), logging to the working directory")
            self.log_dir = '.'

    def _file_handler(self, rotation: str, level: int) -> logging.Handler:
        """
        Build the log file handler.

        Args:
            rotation: 'daily' or 'midnight' to rotate, anything else for a plain file
            level: Minimum level written to the file
        """
        path = os.path.join(self.log_dir, LOG_FILE_NAME)
        if str(rotation).lower() in ('daily', 'midnight'):
            handler = logging.handlers.TimedRotatingFileHandler(
                path, when='midnight', backupCount=self.retention_days, encoding='utf-8'
            )
            handler.suffix = '%Y-%m-%d'
        else:
            handler = logging.FileHandler(path, encoding='utf-8')
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(self.FILE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
        return handler

    def _console_handler(self, level: int) -> logging.Handler:
        handler = logging.StreamHandler()
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(self.CONSOLE_FORMAT))
        return handler

    def _remove_expired_logs(self) -> None:
        """Delete rotated log files last modified before the retention window."""
        if not self.log_dir or self.retention_days <= 0:
            return

        cutoff = datetime.now() - timedelta(days=self.retention_days)
        for path in glob.glob(os.path.join(self.log_dir, LOG_FILE_NAME + '.*')):
            try:
                if datetime.fromtimestamp(os.path.getmtime(path)) < cutoff:
                    os.remove(path)
            except OSError as e:
                print(f"Warning: cannot remove expired log file {path}: {e}")

    def reset(self) -> None:
        """Allow setup_logging to configure the handlers again."""
        self.configured = False


_logging_manager = LoggingManager()


def setup_logging(config: Dict[str, Any]) -> None:
    """Configure process-wide logging; later calls are ignored until reset."""
    _logging_manager.setup_logging(config)


class SecurityAuditLogger:
    """
    Audit trail of credential checks and directory changes.

    Records go to the ``security`` logger and never include passwords.
    """

    def __init__(self):
        self.logger = logging.getLogger('security')

    @staticmethod
    def _status(success: bool) -> str:
        return "SUCCESS" if success else "FAILURE"

    def log_authentication_attempt(self, account_name: str, success: bool):
        self.logger.info(f"Authentication {self._status(success)}: user={account_name}")

    def log_password_change(self, account_name: str, by_admin: bool, success: bool):
        kind = "reset" if by_admin else "change"
        self.logger.info(f"Password {kind} {self._status(success)}: user={account_name}")

    def log_directory_operation(self, operation: str, target: str, success: bool):
        self.logger.info(f"Directory operation {self._status(success)}: {operation} target={target}")

    def log_security_event(self, event: str, details: str = ""):
        self.logger.warning(f"Security event: {event} - {details}" if details else f"Security event: {event}")


security_logger = SecurityAuditLogger()
