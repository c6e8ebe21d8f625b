##########################################################################################
#
# Module: jira_ops
#
# Description: Jira operations: client wrapper, E2E link-graph resolver,
#              dependency map exporters and action dispatch.
#
# Author: Cornelis Networks
#
##########################################################################################

from jira_ops.actions import ACTIONS, Action, ActionRequest, dispatch, parse_source_keys
from jira_ops.base import ActionResult, ActionStatus, BatchResult
from jira_ops.client import IssueClient
from jira_ops.errors import (
    Error,
    ExportError,
    InvalidArgumentError,
    IssueNotFoundError,
    JiraConnectionError,
    JiraCredentialsError,
    RemoteUnavailableError,
)
from jira_ops.exporter import CsvExporter, ExcelExporter, JsonExporter, export_dependency_map, read_dependency_csv
from jira_ops.models import DependencyMap, IssueRef, Link
from jira_ops.resolver import LinkGraphResolver

__all__ = [
    'ACTIONS',
    'Action',
    'ActionRequest',
    'ActionResult',
    'ActionStatus',
    'BatchResult',
    'CsvExporter',
    'DependencyMap',
    'Error',
    'ExcelExporter',
    'ExportError',
    'InvalidArgumentError',
    'IssueClient',
    'IssueNotFoundError',
    'IssueRef',
    'JiraConnectionError',
    'JiraCredentialsError',
    'JsonExporter',
    'Link',
    'LinkGraphResolver',
    'RemoteUnavailableError',
    'dispatch',
    'export_dependency_map',
    'parse_source_keys',
    'read_dependency_csv',
]
