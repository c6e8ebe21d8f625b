##########################################################################################
#
# Module: jira_ops/actions.py
#
# Description: Action dispatch. Each Action maps to a handler together with the
#              request fields it requires; handlers drive the IssueClient,
#              resolver and exporter and report per-key results.
#
# Author: Cornelis Networks
#
##########################################################################################

import logging
import os
import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from jira_ops.base import ActionResult, BatchResult
from jira_ops.console import output
from jira_ops.errors import InvalidArgumentError
from jira_ops.exporter import STDOUT_DUMP, export_dependency_map
from jira_ops.resolver import LinkGraphResolver

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

# Separators accepted between source keys: comma, semicolon, whitespace
KEY_SEPARATORS = re.compile(r'[,;\s]+')


class Action(Enum):
    '''Closed set of supported actions.'''
    GET = 'GET'
    LINK = 'LINK'
    GET_E2ES = 'GET_E2ES'
    GET_TRANSITIONS = 'GET_TRANSITIONS'
    ASSIGN_TO = 'ASSIGN_TO'
    ADVANCE_ISSUE = 'ADVANCE_ISSUE'
    BLOCK_ISSUE = 'BLOCK_ISSUE'
    UNBLOCK_ISSUE = 'UNBLOCK_ISSUE'
    AUTO_TRANSITION_ISSUE = 'AUTO_TRANSITION_ISSUE'
    CLONE = 'CLONE'
    MOVE = 'MOVE'

    @classmethod
    def from_name(cls, name: Optional[str]) -> 'Action':
        '''
        Look up an action by name, ignoring case and accepting '-' for '_'.

        Raises:
            InvalidArgumentError: If the name is not a known action.
        '''
        normalized = (name or '').strip().upper().replace('-', '_')
        try:
            return cls(normalized)
        except ValueError:
            valid = ', '.join(a.value for a in cls)
            raise InvalidArgumentError(f'Unknown action "{name}". Valid actions: {valid}') from None


def parse_source_keys(text: Optional[str]) -> List[str]:
    '''Split a delimiter-separated list of issue keys, dropping blanks and duplicates.'''
    keys = []
    for part in KEY_SEPARATORS.split(text or ''):
        key = part.strip().upper()
        if key and key not in keys:
            keys.append(key)
    return keys


@dataclass
class ActionRequest:
    '''
    Arguments for a dispatched action.

    Only the fields listed in the action's ActionSpec.required are guaranteed
    to be set when the handler runs.
    '''
    source_keys: List[str] = field(default_factory=list)
    target: Optional[str] = None
    link_type: Optional[str] = None
    project: Optional[str] = None
    user: Optional[str] = None
    transition: Optional[str] = None
    status: Optional[str] = None
    comment: Optional[str] = None
    recursive: bool = False
    dump_file: Optional[str] = None
    dump_format: str = 'csv'

    @property
    def source_key(self) -> str:
        return self.source_keys[0]


@dataclass(frozen=True)
class ActionSpec:
    '''
    Dispatch table entry.

    Attributes:
        handler: Callable(client, request, settings) -> BatchResult.
        required: ActionRequest fields that must be non-empty.
        batch: Whether several source keys are accepted.
        description: One-line help text.
    '''
    handler: Callable[..., BatchResult]
    required: Tuple[str, ...] = ()
    batch: bool = False
    description: str = ''


# ****************************************************************************************
# Handlers
# ****************************************************************************************

def _single(action, key, data=None):
    result = BatchResult(action=action.value)
    result.add(ActionResult.success(key, data))
    return result


def handle_get(client, request, settings):
    '''Show an issue and its links.'''
    key = request.source_key
    log.debug(f'Entering handle_get(key={key})')
    details = client.issue_details(key)
    links = client.links(key)

    output('')
    output('=' * 100)
    output(f'{details["key"]}: {details["summary"]}')
    output('=' * 100)
    output(f'{"Project":<12} {details["project"]}')
    output(f'{"Type":<12} {details["issue_type"]}')
    output(f'{"Status":<12} {details["status"]}')
    output(f'{"Priority":<12} {details["priority"] or "N/A"}')
    output(f'{"Assignee":<12} {details["assignee"] or "Unassigned"}')
    output('-' * 100)
    if links:
        output(f'Links ({len(links)}):')
        for link in links:
            other = link.other_end(key)
            direction = '->' if link.is_outgoing(key) else '<-'
            output(f'  {direction} {link.type:<20} {other.key:<15} [{other.issue_type} | {other.status}] {other.summary}')
    else:
        output('No links.')
    output('')
    return _single(Action.GET, key, details)


def handle_link(client, request, settings):
    '''Link source -> target with the requested link type.'''
    key = request.source_key
    target = request.target.strip().upper()
    if key == target:
        raise InvalidArgumentError(f'Cannot link {key} to itself')
    client.create_link(key, target, request.link_type)
    output(f'Linked {key} -> {target} ({request.link_type})')
    return _single(Action.LINK, key, target)


def handle_get_e2es(client, request, settings):
    '''Resolve E2E tests for the source issue, print them and optionally export.'''
    key = request.source_key
    resolver = LinkGraphResolver.from_settings(client, settings)
    dep_map = resolver.resolve(key, recursive=request.recursive)

    # stdout carries only the CSV when dumping to it
    stream = sys.stderr if request.dump_file == STDOUT_DUMP else None

    output('', stream)
    output(f'E2Es for {key}' + (' (recursive)' if request.recursive else ''), stream)
    for issue_key in dep_map:
        marker = ' (FAILED)' if issue_key in dep_map.failures else ''
        output(f'    {issue_key} -> [{", ".join(dep_map.e2e_keys(issue_key))}]{marker}', stream)
    if dep_map.failures:
        output('', stream)
        output('Errors:', stream)
        for issue_key, error in dep_map.failures.items():
            output(f'  {issue_key}: {error}', stream)
    output('', stream)

    if request.dump_file:
        export_dependency_map(dep_map, request.dump_file, request.dump_format, settings.jira_url)

    result = BatchResult(action=Action.GET_E2ES.value)
    for issue_key in dep_map:
        if issue_key in dep_map.failures:
            result.add(ActionResult.failure(issue_key, dep_map.failures[issue_key]))
        else:
            result.add(ActionResult.success(issue_key, dep_map.e2e_keys(issue_key)))
    return result


def handle_get_transitions(client, request, settings):
    '''List the transitions available for an issue.'''
    key = request.source_key
    transitions = client.transitions(key)

    output('')
    output(f'Transitions for {key}:')
    output('-' * 60)
    output(f'{"ID":<8} {"Name":<25} {"To Status":<25}')
    output('-' * 60)
    for t in transitions:
        output(f'{t["id"]:<8} {t["name"]:<25} {t["to"]:<25}')
    output('-' * 60)
    output(f'Total: {len(transitions)} transitions')
    output('')
    return _single(Action.GET_TRANSITIONS, key, transitions)


def handle_assign_to(client, request, settings):
    '''Assign the issue to --user, or to the authenticated user when omitted.'''
    key = request.source_key
    assignee = client.assign(key, request.user or 'me')
    if assignee is None:
        output(f'Unassigned {key}')
    else:
        output(f'Successfully assigned {key} to {request.user or "me"}')
    return _single(Action.ASSIGN_TO, key, assignee)


def _apply_transition(action, client, key, name, comment=None):
    applied = client.transition(key, name)
    if comment:
        client.add_comment(key, comment)
    output(f'{key}: {applied["name"]} -> {applied["to"]}')
    return _single(action, key, applied)


def handle_advance_issue(client, request, settings):
    return _apply_transition(Action.ADVANCE_ISSUE, client, request.source_key,
                             request.transition, request.comment)


def handle_block_issue(client, request, settings):
    return _apply_transition(Action.BLOCK_ISSUE, client, request.source_key,
                             settings.block_transition, request.comment)


def handle_unblock_issue(client, request, settings):
    return _apply_transition(Action.UNBLOCK_ISSUE, client, request.source_key,
                             settings.unblock_transition, request.comment)


def handle_auto_transition_issue(client, request, settings):
    '''
    Walk the workflow until the issue reaches the target status.

    Each step takes the transition landing on the target if offered, otherwise
    the first transition leading to a status not yet visited.

    Raises:
        InvalidArgumentError: If no transition makes progress or the step
                              limit is reached before the target.
    '''
    key = request.source_key
    target = request.status or settings.auto_transition_target
    log.debug(f'Entering handle_auto_transition_issue(key={key}, target={target})')

    current = client.fetch(key).status
    path = [current]
    seen = {current.lower()}

    while current.lower() != target.lower():
        if len(path) > settings.auto_transition_max_steps:
            raise InvalidArgumentError(
                f'{key}: "{target}" not reached within {settings.auto_transition_max_steps} '
                f'transitions (path: {" -> ".join(path)})')

        available = client.transitions(key)
        chosen = None
        for t in available:
            if t['to'].lower() == target.lower():
                chosen = t
                break
        if chosen is None:
            for t in available:
                if t['to'] and t['to'].lower() not in seen:
                    chosen = t
                    break
        if chosen is None:
            names = [f'{t["name"]} -> {t["to"]}' for t in available]
            raise InvalidArgumentError(
                f'{key}: no transition from "{current}" leads toward "{target}". Available: {names}')

        client.transition(key, chosen['name'])
        current = client.fetch(key).status
        seen.add(current.lower())
        path.append(current)

    if len(path) == 1:
        output(f'{key} is already in "{target}"')
    else:
        output(f'{key}: {" -> ".join(path)}')
    return _single(Action.AUTO_TRANSITION_ISSUE, key, path)


def _run_batch(action, keys, operation):
    '''
    Apply operation(key) -> str to every key, isolating per-key failures.
    '''
    result = BatchResult(action=action.value)
    total = len(keys)

    output('')
    output('=' * 80)
    output(f'{action.value}: {total} issue(s)')
    output('-' * 80)

    for i, key in enumerate(keys, 1):
        status_str = f'[{i}/{total}] {key}'
        log.debug(f'Processing {status_str}')
        try:
            new_key = operation(key)
            output(f'{status_str}: SUCCESS -> {new_key}')
            result.add(ActionResult.success(key, new_key))
        except Exception as e:
            message = getattr(e, 'message', None) or str(e)
            log.error(f'{key}: Failed - {message}')
            output(f'{status_str}: FAILED - {message}')
            result.add(ActionResult.failure(key, message))

    output('-' * 80)
    output(f'Completed: {len(result.successes)} successful, {len(result.failures)} failed')
    if result.failures:
        output('')
        output('Errors:')
        for failed in result.failures[:10]:
            output(f'  {failed.key}: {failed.error}')
        if len(result.failures) > 10:
            output(f'  ... and {len(result.failures) - 10} more errors')
    output('=' * 80)
    output('')
    return result


def handle_clone(client, request, settings):
    '''Clone each source issue (into --project when given).'''
    def _clone(key):
        new_key = client.clone(key, project=request.project)
        log.info(f'Cloned {key} to {new_key}')
        return new_key

    return _run_batch(Action.CLONE, request.source_keys, _clone)


def handle_move(client, request, settings):
    '''Copy each source issue into the destination project and note the move on the source.'''
    dest_project = request.project or settings.move_project

    def _move(key):
        new_key = client.clone(key, project=dest_project)
        client.add_comment(key, f'Moved to {new_key}')
        log.info(f'Moved {key} to {new_key}')
        return new_key

    return _run_batch(Action.MOVE, request.source_keys, _move)


# ****************************************************************************************
# Dispatch
# ****************************************************************************************

ACTIONS: Dict[Action, ActionSpec] = {
    Action.GET: ActionSpec(handle_get, description='Show an issue and its links'),
    Action.LINK: ActionSpec(handle_link, required=('target', 'link_type'),
                            description='Link SOURCE to --target with --link-type'),
    Action.GET_E2ES: ActionSpec(handle_get_e2es,
                                description='List E2E tests of SOURCE (--recursive follows dependencies)'),
    Action.GET_TRANSITIONS: ActionSpec(handle_get_transitions,
                                       description='List available workflow transitions'),
    Action.ASSIGN_TO: ActionSpec(handle_assign_to, description='Assign to --user (default: me)'),
    Action.ADVANCE_ISSUE: ActionSpec(handle_advance_issue, required=('transition',),
                                     description='Apply the transition named by --transition'),
    Action.BLOCK_ISSUE: ActionSpec(handle_block_issue, description='Apply the configured block transition'),
    Action.UNBLOCK_ISSUE: ActionSpec(handle_unblock_issue, description='Apply the configured unblock transition'),
    Action.AUTO_TRANSITION_ISSUE: ActionSpec(handle_auto_transition_issue,
                                             description='Walk the workflow to --status (default: Done)'),
    Action.CLONE: ActionSpec(handle_clone, batch=True, description='Clone each SOURCE key'),
    Action.MOVE: ActionSpec(handle_move, batch=True,
                            description='Copy each SOURCE key into --project (default: JVCLD)'),
}


def dispatch(action, client, request, settings):
    '''
    Validate the request against the action's ACTIONS entry and run its handler.

    Input:
        action: Action to run.
        client: IssueClient (or compatible) instance.
        request: ActionRequest with the parsed arguments.
        settings: Settings instance.

    Output:
        BatchResult of the handler.

    Raises:
        InvalidArgumentError: If required arguments are missing or several keys
                              are given to a single-key action.
    '''
    spec = ACTIONS[action]
    log.debug(f'Entering dispatch(action={action.value}, keys={request.source_keys})')

    if not request.source_keys:
        raise InvalidArgumentError(f'{action.value} requires at least one source issue key')
    missing = [name for name in spec.required if not getattr(request, name)]
    if missing:
        flags = ', '.join('--' + name.replace('_', '-') for name in missing)
        raise InvalidArgumentError(f'{action.value} requires {flags}')
    if not spec.batch and len(request.source_keys) > 1:
        raise InvalidArgumentError(f'{action.value} accepts a single source key, got {len(request.source_keys)}')

    return spec.handler(client, request, settings)
