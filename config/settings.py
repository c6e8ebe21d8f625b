##########################################################################################
#
# Module: config/settings.py
#
# Description: Application settings and logging configuration for the Jira CLI.
#
# Author: Cornelis Networks
#
##########################################################################################

import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv

from jira_ops.client import CLONE_LINK
from jira_ops.resolver import DEPENDS_ON_LINK, ISSUE_E2E, TESTED_BY_LINK

# Load environment variables; real process environment wins over .env
load_dotenv(override=False)

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

DEFAULT_JIRA_URL = 'https://cornelisnetworks.atlassian.net'

LOG_FORMAT = '%(asctime)-15s [%(funcName)25s:%(lineno)-5s] %(levelname)-8s %(message)s'

# Handlers installed by configure_logging(), replaced on reconfiguration
_handlers: List[logging.Handler] = []


def _env_int(name, default):
    '''
    Read an integer environment variable.

    Raises:
        ValueError: If the variable is set to something other than an integer.
    '''
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f'Configuration errors: {name} must be an integer, got "{value}"') from None


@dataclass
class Settings:
    '''
    Application settings loaded from environment variables.
    '''
    # Jira settings
    jira_url: str = DEFAULT_JIRA_URL
    jira_email: Optional[str] = None
    jira_api_token: Optional[str] = None

    # Link and issue type names used by the E2E resolver
    depends_on_link: str = DEPENDS_ON_LINK
    tested_by_link: str = TESTED_BY_LINK
    e2e_issue_type: str = ISSUE_E2E
    clone_link: str = CLONE_LINK

    # Action defaults
    move_project: str = 'JVCLD'
    block_transition: str = 'Block'
    unblock_transition: str = 'Unblock'
    auto_transition_target: str = 'Done'
    auto_transition_max_steps: int = 10

    # Logging
    log_file: str = 'jira_cli.log'
    log_level: str = 'DEBUG'
    console_log_level: str = 'INFO'

    @classmethod
    def from_env(cls) -> 'Settings':
        '''
        Create settings from environment variables.

        Output:
            Settings instance populated from environment.

        Raises:
            ValueError: If a numeric setting is not an integer.
        '''
        return cls(
            # Jira
            jira_url=os.getenv('JIRA_URL', DEFAULT_JIRA_URL),
            jira_email=os.getenv('JIRA_EMAIL'),
            jira_api_token=os.getenv('JIRA_API_TOKEN'),

            # Link types
            depends_on_link=os.getenv('DEPENDS_ON_LINK', DEPENDS_ON_LINK),
            tested_by_link=os.getenv('TESTED_BY_LINK', TESTED_BY_LINK),
            e2e_issue_type=os.getenv('E2E_ISSUE_TYPE', ISSUE_E2E),
            clone_link=os.getenv('CLONE_LINK', CLONE_LINK),

            # Actions
            move_project=os.getenv('MOVE_PROJECT', 'JVCLD'),
            block_transition=os.getenv('BLOCK_TRANSITION', 'Block'),
            unblock_transition=os.getenv('UNBLOCK_TRANSITION', 'Unblock'),
            auto_transition_target=os.getenv('AUTO_TRANSITION_TARGET', 'Done'),
            auto_transition_max_steps=_env_int('AUTO_TRANSITION_MAX_STEPS', 10),

            # Logging
            log_file=os.getenv('LOG_FILE', 'jira_cli.log'),
            log_level=os.getenv('LOG_LEVEL', 'DEBUG'),
            console_log_level=os.getenv('CONSOLE_LOG_LEVEL', 'INFO'),
        )

    def validate(self) -> bool:
        '''
        Validate that required settings are present and sane.

        Credentials are checked when connecting, not here, so that a
        misconfigured link type is reported before any network activity.

        Output:
            True if all settings are valid.

        Raises:
            ValueError: If any setting is missing or invalid.
        '''
        errors = []

        if not self.jira_url:
            errors.append('JIRA_URL is required')
        if not self.depends_on_link:
            errors.append('DEPENDS_ON_LINK must not be empty')
        if not self.tested_by_link:
            errors.append('TESTED_BY_LINK must not be empty')
        if not self.clone_link:
            errors.append('CLONE_LINK must not be empty')
        if self.auto_transition_max_steps < 1:
            errors.append('AUTO_TRANSITION_MAX_STEPS must be at least 1')

        for name in ('log_level', 'console_log_level'):
            level = getattr(self, name)
            if not isinstance(getattr(logging, level.upper(), None), int):
                errors.append(f'{name.upper()} is not a valid logging level: {level}')

        if errors:
            raise ValueError('Configuration errors: ' + '; '.join(errors))

        return True

    def to_dict(self) -> Dict[str, Any]:
        '''Convert settings to dictionary (masking secrets).'''
        return {
            'jira_url': self.jira_url,
            'jira_email': self.jira_email,
            'jira_api_token': '***' if self.jira_api_token else None,
            'depends_on_link': self.depends_on_link,
            'tested_by_link': self.tested_by_link,
            'e2e_issue_type': self.e2e_issue_type,
            'clone_link': self.clone_link,
            'move_project': self.move_project,
            'block_transition': self.block_transition,
            'unblock_transition': self.unblock_transition,
            'auto_transition_target': self.auto_transition_target,
            'auto_transition_max_steps': self.auto_transition_max_steps,
            'log_file': self.log_file,
            'log_level': self.log_level,
            'console_log_level': self.console_log_level,
        }


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    '''
    Get the global settings instance.

    Output:
        Settings instance (creates from environment if not exists).
    '''
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def configure_logging(settings: Optional[Settings] = None, verbose: bool = False,
                      quiet: bool = False) -> logging.FileHandler:
    '''
    Configure logging based on settings and CLI verbosity flags.

    Input:
        settings: Optional settings instance (uses global if not provided).
        verbose: Console shows DEBUG and above.
        quiet: Console shows ERROR and above.

    Output:
        The file handler, so callers can copy user-facing output into the log.
    '''
    settings = settings or get_settings()

    root_logger = logging.getLogger()
    for handler in _handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _handlers.clear()

    root_logger.setLevel(getattr(logging, settings.log_level.upper()))

    # File handler
    fh = logging.FileHandler(settings.log_file, mode='w')
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(fh)

    # Console handler; stderr keeps stdout clean for CSV output
    ch = logging.StreamHandler(sys.stderr)
    if verbose:
        ch.setLevel(logging.DEBUG)
    elif quiet:
        ch.setLevel(logging.ERROR)
    else:
        ch.setLevel(getattr(logging, settings.console_log_level.upper()))
    ch.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
    root_logger.addHandler(ch)

    _handlers.extend([fh, ch])

    log.info(f'Logging configured: file={settings.log_file}, level={settings.log_level}')
    return fh
