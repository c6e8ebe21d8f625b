##########################################################################################
#
# Module: jira_ops/client.py
#
# Description: Thin wrapper around the jira library. The only network-facing
#              component; translates remote failures into this package's errors.
#
# Author: Cornelis Networks
#
# Credentials:
#   This module uses Jira API tokens for authentication. To set up:
#   1. Generate an API token at: https://id.atlassian.com/manage-profile/security/api-tokens
#   2. Set environment variables:
#      export JIRA_EMAIL="your.email@cornelisnetworks.com"
#      export JIRA_API_TOKEN="your_api_token_here"
#
#   NEVER commit credentials to version control.
#
##########################################################################################

import logging
import os
import sys
from typing import Any, Dict, List, Optional

import requests
from jira import JIRA
from jira.exceptions import JIRAError

from jira_ops.errors import (
    IssueNotFoundError,
    InvalidArgumentError,
    JiraConnectionError,
    JiraCredentialsError,
    RemoteUnavailableError,
)
from jira_ops.models import IssueRef, Link

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

# Fields needed for link traversal and display
ISSUE_FIELDS = ['summary', 'status', 'issuetype', 'project', 'assignee', 'priority', 'issuelinks']

# Fields copied when cloning an issue
CLONE_FIELDS = ['summary', 'description', 'issuetype', 'project', 'priority', 'labels', 'components']

# Link type tying a clone to its source
CLONE_LINK = 'Cloners'

# Assignee values that mean "clear the assignee"
UNASSIGN_VALUES = ('none', 'unassigned', '')


def adf_from_text(text):
    '''
    Convert plain text into Jira Cloud ADF (Atlassian Document Format).

    Jira Cloud REST API v3 expects ADF JSON for rich text fields (comments, description).
    '''
    if text is None:
        return None

    return {
        'type': 'doc',
        'version': 1,
        'content': [
            {
                'type': 'paragraph',
                'content': [
                    {'type': 'text', 'text': str(text)}
                ],
            }
        ],
    }


def get_jira_credentials(settings):
    '''
    Retrieve Jira credentials from settings.

    Input:
        settings: Settings instance with jira_email and jira_api_token.

    Output:
        Tuple of (email, api_token) strings.

    Raises:
        JiraCredentialsError: If required values are not set.
    '''
    log.debug('Entering get_jira_credentials()')
    if not settings.jira_email:
        raise JiraCredentialsError('JIRA_EMAIL environment variable not set')
    if not settings.jira_api_token:
        raise JiraCredentialsError('JIRA_API_TOKEN environment variable not set')

    log.debug(f'Retrieved credentials for: {settings.jira_email}')
    return settings.jira_email, settings.jira_api_token


class IssueClient:
    '''
    Issue-tracker client used by the resolver and the action handlers.

    Construct with an existing JIRA object or via IssueClient.connect(settings).
    Use as a context manager so the underlying session is always closed.
    '''

    def __init__(self, jira, clone_link: str = CLONE_LINK):
        self._jira = jira
        self.clone_link = clone_link
        self._cache: Dict[str, Any] = {}

    @classmethod
    def connect(cls, settings) -> 'IssueClient':
        '''
        Establish connection to Jira using API token authentication.

        Input:
            settings: Settings instance (URL, credentials, clone link type).

        Output:
            Connected IssueClient.

        Raises:
            JiraCredentialsError: If credentials are missing.
            JiraConnectionError: If connection to Jira fails.
        '''
        log.debug('Entering IssueClient.connect()')
        email, api_token = get_jira_credentials(settings)

        log.info(f'Connecting to Jira at {settings.jira_url}...')
        try:
            jira = JIRA(
                server=settings.jira_url,
                basic_auth=(email, api_token),
                options={'rest_api_version': '3'}
            )
        except (JIRAError, requests.exceptions.RequestException) as e:
            raise JiraConnectionError(str(e)) from e

        log.info('Successfully connected to Jira')
        return cls(jira, clone_link=settings.clone_link)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False

    def close(self):
        log.debug('Closing Jira session')
        self._cache.clear()
        try:
            self._jira.close()
        except (JIRAError, requests.exceptions.RequestException) as e:
            log.warning(f'Error while closing Jira session: {e}')

    # ------------------------------------------------------------------------------------
    # Remote call plumbing
    # ------------------------------------------------------------------------------------

    def _call(self, description, key, func, *args, **kwargs):
        '''
        Run a jira library call, translating remote failures.

        Raises:
            IssueNotFoundError: The remote answered 404 for key.
            RemoteUnavailableError: Any other Jira or network failure.
        '''
        try:
            return func(*args, **kwargs)
        except JIRAError as e:
            if e.status_code == 404 and key:
                raise IssueNotFoundError(key, e.text) from e
            raise RemoteUnavailableError(f'{description}: {e.text or e}', key=key,
                                         status_code=e.status_code) from e
        except requests.exceptions.RequestException as e:
            raise RemoteUnavailableError(f'{description}: {e}', key=key) from e

    def _load(self, key):
        if key not in self._cache:
            log.debug(f'Fetching issue: {key}')
            self._cache[key] = self._call(f'fetch {key}', key, self._jira.issue,
                                          key, fields=','.join(ISSUE_FIELDS))
        return self._cache[key]

    def _forget(self, key):
        self._cache.pop(key, None)

    # ------------------------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------------------------

    def fetch(self, key: str) -> IssueRef:
        '''
        Fetch an issue's metadata.

        Raises:
            IssueNotFoundError: If key does not resolve.
            RemoteUnavailableError: On network or service failure.
        '''
        return IssueRef.from_raw(self._load(key).raw)

    def links(self, key: str) -> List[Link]:
        '''
        Return the typed links of an issue, oriented from -> to.

        An issuelinks entry with outwardIssue X on issue K is K -> X;
        an entry with inwardIssue Y is Y -> K.
        '''
        raw = self._load(key).raw
        this = IssueRef.from_raw(raw)
        result = []
        for entry in raw.get('fields', {}).get('issuelinks', []) or []:
            link_type = (entry.get('type') or {}).get('name', '')
            if entry.get('outwardIssue'):
                result.append(Link(link_type, this, IssueRef.from_raw(entry['outwardIssue'])))
            if entry.get('inwardIssue'):
                result.append(Link(link_type, IssueRef.from_raw(entry['inwardIssue']), this))
        log.debug(f'{key}: {len(result)} links')
        return result

    def issue_details(self, key: str) -> Dict[str, str]:
        '''Flattened display fields for an issue.'''
        fields = self._load(key).raw.get('fields', {})
        return {
            'key': key,
            'project': (fields.get('project') or {}).get('key', ''),
            'issue_type': (fields.get('issuetype') or {}).get('name', ''),
            'status': (fields.get('status') or {}).get('name', ''),
            'priority': (fields.get('priority') or {}).get('name', ''),
            'assignee': (fields.get('assignee') or {}).get('displayName', ''),
            'summary': fields.get('summary', '') or '',
        }

    def transitions(self, key: str) -> List[Dict[str, Any]]:
        '''
        Return the transitions currently available for an issue.

        Output:
            List of dicts with 'id', 'name' and 'to' (target status name).
        '''
        raw = self._call(f'transitions of {key}', key, self._jira.transitions, key)
        return [
            {
                'id': str(t.get('id', '')),
                'name': t.get('name', ''),
                'to': (t.get('to') or {}).get('name', ''),
            }
            for t in raw
        ]

    def current_user(self) -> str:
        '''Account id (Cloud) or username of the authenticated user.'''
        return self._call('current user', None, self._jira.current_user)

    # ------------------------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------------------------

    def create_link(self, from_key: str, to_key: str, link_type: str) -> None:
        '''Create a link of link_type from from_key to to_key.'''
        log.debug(f'Entering create_link(from_key={from_key}, to_key={to_key}, link_type={link_type})')
        if not from_key or not to_key or not link_type:
            raise InvalidArgumentError('create_link requires from_key, to_key and link_type')
        self._call(f'link {from_key} -> {to_key}', from_key, self._jira.create_issue_link,
                   type=link_type, inwardIssue=from_key, outwardIssue=to_key)
        self._forget(from_key)
        self._forget(to_key)

    def transition(self, key: str, transition_name: str) -> Dict[str, Any]:
        '''
        Apply the transition named transition_name (case-insensitive).

        Output:
            The transition dict that was applied.

        Raises:
            InvalidArgumentError: If no such transition is available for the issue.
        '''
        log.debug(f'Entering transition(key={key}, transition_name={transition_name})')
        available = self.transitions(key)
        chosen = None
        for t in available:
            if t['name'].lower() == transition_name.lower():
                chosen = t
                break

        if chosen is None:
            names = [t['name'] for t in available]
            raise InvalidArgumentError(
                f'Transition "{transition_name}" not available for {key}. Available: {names}')

        self._call(f'transition {key}', key, self._jira.transition_issue, key, chosen['id'])
        self._forget(key)
        log.info(f'{key}: applied transition "{chosen["name"]}" -> {chosen["to"]}')
        return chosen

    def assign(self, key: str, user: Optional[str]) -> Optional[str]:
        '''
        Assign an issue.

        Input:
            user: Account id / username, 'me' for the authenticated user,
                  or None / 'none' / 'unassigned' to clear the assignee.

        Output:
            The assignee actually sent to Jira (None when unassigned).
        '''
        log.debug(f'Entering assign(key={key}, user={user})')
        if user is None or user.lower() in UNASSIGN_VALUES:
            assignee = None
        elif user.lower() == 'me':
            assignee = self.current_user()
        else:
            assignee = user

        self._call(f'assign {key}', key, self._jira.assign_issue, key, assignee)
        self._forget(key)
        return assignee

    def add_comment(self, key: str, body: str) -> None:
        self._call(f'comment on {key}', key, self._jira.add_comment, key, adf_from_text(body))

    def clone(self, key: str, project: Optional[str] = None) -> str:
        '''
        Create a copy of an issue and link it to its source.

        Input:
            key: Source issue key.
            project: Destination project key; the source project when None.

        Output:
            Key of the new issue.
        '''
        log.debug(f'Entering clone(key={key}, project={project})')
        source = self._call(f'fetch {key}', key, self._jira.issue, key, fields=','.join(CLONE_FIELDS))
        fields = source.raw.get('fields', {})

        source_project = (fields.get('project') or {}).get('key')
        dest_project = project or source_project
        if not dest_project:
            raise InvalidArgumentError(f'Cannot determine destination project for {key}')

        new_fields = {
            'project': {'key': dest_project},
            'summary': fields.get('summary', '') or key,
            'issuetype': {'name': (fields.get('issuetype') or {}).get('name', 'Task')},
        }
        if fields.get('description'):
            new_fields['description'] = fields['description']
        if fields.get('priority'):
            new_fields['priority'] = {'name': fields['priority'].get('name')}
        if fields.get('labels'):
            new_fields['labels'] = list(fields['labels'])
        # Components are project specific
        if fields.get('components') and dest_project == source_project:
            new_fields['components'] = [{'name': c.get('name')} for c in fields['components']]

        new_issue = self._call(f'create clone of {key}', key, self._jira.create_issue, fields=new_fields)
        log.info(f'Created {new_issue.key} from {key} in {dest_project}')

        self.create_link(new_issue.key, key, self.clone_link)
        return new_issue.key
