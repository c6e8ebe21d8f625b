##########################################################################################
#
# Module: jira_ops/resolver.py
#
# Description: Resolves the end-to-end (E2E) test issues associated with an issue
#              and, optionally, with everything it transitively depends on.
#
# Author: Cornelis Networks
#
##########################################################################################

import logging
import os
import sys
from collections import deque

from jira_ops.errors import InvalidArgumentError, IssueNotFoundError, RemoteUnavailableError
from jira_ops.models import DependencyMap

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

DEPENDS_ON_LINK = 'Depends On'
TESTED_BY_LINK = 'Tests Writing'
ISSUE_E2E = 'End-to-end Test'


class LinkGraphResolver:
    '''
    Breadth-first traversal of an issue-link graph.

    Dependency links (outgoing links of depends_on_link type) are followed;
    E2E links (tested_by_link type, either direction, other end of type
    e2e_issue_type) are collected at the issue where they are found.
    E2E sets are not propagated up the dependency chain.
    '''

    def __init__(self, client, depends_on_link=DEPENDS_ON_LINK, tested_by_link=TESTED_BY_LINK,
                 e2e_issue_type=ISSUE_E2E):
        self.client = client
        self.depends_on_link = depends_on_link
        self.tested_by_link = tested_by_link
        self.e2e_issue_type = e2e_issue_type

    @classmethod
    def from_settings(cls, client, settings):
        return cls(
            client,
            depends_on_link=settings.depends_on_link,
            tested_by_link=settings.tested_by_link,
            e2e_issue_type=settings.e2e_issue_type,
        )

    def _same_type(self, actual, expected):
        return (actual or '').lower() == (expected or '').lower()

    def is_dependency(self, link, key):
        return self._same_type(link.type, self.depends_on_link) and link.is_outgoing(key)

    def is_e2e(self, link, key):
        if not self._same_type(link.type, self.tested_by_link):
            return False
        if not self.e2e_issue_type:
            return True
        return self._same_type(link.other_end(key).issue_type, self.e2e_issue_type)

    def resolve(self, source_key, recursive=False):
        '''
        Build the dependency map for source_key.

        Input:
            source_key: Issue key to start from.
            recursive: Follow dependency links transitively when True; otherwise
                       only the source issue is expanded.

        Output:
            DependencyMap with an entry (possibly empty) for every expanded key.
            Keys that could not be fetched keep an empty entry and are listed
            in DependencyMap.failures.

        Raises:
            InvalidArgumentError: If source_key is blank.
        '''
        log.debug(f'Entering resolve(source_key={source_key}, recursive={recursive})')
        if not source_key or not source_key.strip():
            raise InvalidArgumentError('A source issue key is required to resolve E2E tests')
        source_key = source_key.strip()

        dep_map = DependencyMap(source_key=source_key, recursive=recursive)
        visited = {source_key}
        queue = deque([source_key])

        while queue:
            key = queue.popleft()
            dep_map.ensure(key)

            try:
                issue = self.client.fetch(key)
                links = self.client.links(key)
            except (IssueNotFoundError, RemoteUnavailableError) as e:
                log.warning(f'{key}: skipped - {e.message}')
                dep_map.record_failure(key, e)
                continue

            dep_map.issues[key] = issue

            for link in links:
                if self.is_dependency(link, key):
                    target = link.to_issue
                    dep_map.add_dependency(key, target.key)
                    if target.key in visited:
                        continue
                    visited.add(target.key)
                    if recursive:
                        log.debug(f'{key}: depends on {target.key}, queued')
                        queue.append(target.key)
                elif self.is_e2e(link, key):
                    e2e = link.other_end(key)
                    if dep_map.add(key, e2e):
                        log.debug(f'{key}: E2E {e2e.key}')

        log.info(f'Resolved E2Es for {source_key}: {len(dep_map)} issues expanded, '
                 f'{len(dep_map.failures)} failed')
        return dep_map
