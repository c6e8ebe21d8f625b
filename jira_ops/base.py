##########################################################################################
#
# Module: jira_ops/base.py
#
# Description: Result types for actions and per-key batch processing.
#              Provides a consistent success/failure record and exit code mapping.
#
# Author: Cornelis Networks
#
##########################################################################################

import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

# Process exit codes
EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_USAGE = 2
EXIT_PARTIAL = 3
EXIT_INTERRUPTED = 130


class ActionStatus(Enum):
    '''Status of an action applied to one issue key.'''
    SUCCESS = 'success'
    ERROR = 'error'


@dataclass
class ActionResult:
    '''
    Result of an action on a single issue key.

    Attributes:
        key: The issue key the action was applied to.
        status: The execution status.
        data: The result data (if successful), e.g. the new key of a clone.
        error: Error message (if failed).
    '''
    key: str
    status: ActionStatus
    data: Any = None
    error: Optional[str] = None

    @classmethod
    def success(cls, key: str, data: Any = None) -> 'ActionResult':
        '''Create a successful result.'''
        return cls(key=key, status=ActionStatus.SUCCESS, data=data)

    @classmethod
    def failure(cls, key: str, error: str) -> 'ActionResult':
        '''Create a failed result.'''
        return cls(key=key, status=ActionStatus.ERROR, error=error)

    @property
    def is_success(self) -> bool:
        return self.status == ActionStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == ActionStatus.ERROR

    def to_dict(self) -> Dict[str, Any]:
        '''Convert result to dictionary.'''
        result = {
            'key': self.key,
            'status': self.status.value,
        }
        if self.data is not None:
            result['data'] = self.data
        if self.error:
            result['error'] = self.error
        return result


@dataclass
class BatchResult:
    '''
    Aggregate of per-key results for one dispatched action.
    '''
    action: str
    results: List[ActionResult] = field(default_factory=list)

    def add(self, result: ActionResult) -> ActionResult:
        self.results.append(result)
        return result

    @property
    def successes(self) -> List[ActionResult]:
        return [r for r in self.results if r.is_success]

    @property
    def failures(self) -> List[ActionResult]:
        return [r for r in self.results if r.is_error]

    @property
    def is_partial(self) -> bool:
        return bool(self.successes) and bool(self.failures)

    @property
    def exit_code(self) -> int:
        '''
        Map the outcome to a process exit code.

        All keys succeeded -> EXIT_SUCCESS; some failed -> EXIT_PARTIAL;
        every key failed -> EXIT_FAILURE.
        '''
        if not self.failures:
            return EXIT_SUCCESS
        if self.successes:
            return EXIT_PARTIAL
        return EXIT_FAILURE

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action': self.action,
            'succeeded': len(self.successes),
            'failed': len(self.failures),
            'results': [r.to_dict() for r in self.results],
        }
