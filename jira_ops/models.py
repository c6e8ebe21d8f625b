##########################################################################################
#
# Module: jira_ops/models.py
#
# Description: Data model for issues, typed links and resolved E2E dependency maps.
#
# Author: Cornelis Networks
#
##########################################################################################

import logging
import os
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Set, Tuple

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))


@dataclass(frozen=True)
class IssueRef:
    '''
    Immutable reference to a fetched issue.

    Equality and hashing use the key only, so a set of IssueRef never holds
    the same issue twice even if two responses disagree on its summary.
    '''
    key: str
    summary: str = field(default='', compare=False)
    status: str = field(default='', compare=False)
    issue_type: str = field(default='', compare=False)

    @classmethod
    def from_raw(cls, raw: Dict[str, Any]) -> 'IssueRef':
        '''
        Build an IssueRef from a Jira issue payload.

        Works for both full issue payloads and the abbreviated issues embedded
        in issuelinks, which carry summary, status and issuetype only.
        '''
        fields = raw.get('fields', {}) or {}
        status = fields.get('status') or {}
        issue_type = fields.get('issuetype') or {}
        return cls(
            key=raw.get('key', ''),
            summary=fields.get('summary', '') or '',
            status=status.get('name', '') or '',
            issue_type=issue_type.get('name', '') or '',
        )

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class Link:
    '''
    Typed, directed relation between two issues: from_issue -> to_issue.
    '''
    type: str
    from_issue: IssueRef
    to_issue: IssueRef

    def is_outgoing(self, key: str) -> bool:
        '''True if the link starts at the given issue.'''
        return self.from_issue.key == key

    def other_end(self, key: str) -> IssueRef:
        '''Return the issue at the opposite end from key.'''
        return self.to_issue if self.from_issue.key == key else self.from_issue


@dataclass
class DependencyMap:
    '''
    Resolved association of issue keys to the E2E test issues found at them.

    Attributes:
        source_key: Key the traversal started from.
        recursive: Whether dependency links were followed transitively.
        entries: Ordered mapping of issue key -> set of E2E IssueRef.
        issues: IssueRef of each key that was fetched successfully.
        dependencies: Issue key -> keys it depends on, as inspected.
        failures: Issue key -> error message for keys that could not be fetched.
    '''
    source_key: str
    recursive: bool = False
    entries: Dict[str, Set[IssueRef]] = field(default_factory=dict)
    issues: Dict[str, IssueRef] = field(default_factory=dict)
    dependencies: Dict[str, Set[str]] = field(default_factory=dict)
    failures: Dict[str, str] = field(default_factory=dict)

    def ensure(self, key: str) -> Set[IssueRef]:
        '''Create an empty entry for key if missing and return it.'''
        return self.entries.setdefault(key, set())

    def add(self, key: str, e2e: IssueRef) -> bool:
        '''
        Attach an E2E issue to key.

        Output:
            True if the issue was newly added; self references are refused.
        '''
        if e2e.key == key:
            log.debug(f'Ignoring self reference on {key}')
            return False
        bucket = self.ensure(key)
        if e2e in bucket:
            return False
        bucket.add(e2e)
        return True

    def add_dependency(self, key: str, dependency_key: str) -> None:
        self.dependencies.setdefault(key, set()).add(dependency_key)

    def record_failure(self, key: str, error: Any) -> None:
        self.ensure(key)
        self.failures[key] = getattr(error, 'message', None) or str(error)

    def e2e_keys(self, key: str) -> List[str]:
        '''Sorted E2E keys attached to key.'''
        return sorted(issue.key for issue in self.entries.get(key, set()))

    def pairs(self) -> Iterator[Tuple[str, Optional[IssueRef]]]:
        '''
        Yield (key, e2e) pairs in map order, E2E issues sorted by key.

        A key with no E2E issues yields a single (key, None) pair.
        '''
        for key, bucket in self.entries.items():
            if not bucket:
                yield key, None
                continue
            for e2e in sorted(bucket, key=lambda issue: issue.key):
                yield key, e2e

    def summary_of(self, key: str) -> str:
        issue = self.issues.get(key)
        return issue.summary if issue else ''

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> Dict[str, Any]:
        '''Convert to a JSON-serializable dictionary.'''
        return {
            'source_key': self.source_key,
            'recursive': self.recursive,
            'issues': [
                {
                    'key': key,
                    'summary': self.summary_of(key),
                    'status': self.issues[key].status if key in self.issues else '',
                    'depends_on': sorted(self.dependencies.get(key, set())),
                    'e2e': [
                        {
                            'key': e2e.key,
                            'summary': e2e.summary,
                            'status': e2e.status,
                        }
                        for e2e in sorted(bucket, key=lambda issue: issue.key)
                    ],
                }
                for key, bucket in self.entries.items()
            ],
            'failures': dict(self.failures),
        }

    def __contains__(self, key: str) -> bool:
        return key in self.entries

    def __getitem__(self, key: str) -> Set[IssueRef]:
        return self.entries[key]

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.entries)
