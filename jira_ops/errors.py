##########################################################################################
#
# Module: jira_ops/errors.py
#
# Description: Exception taxonomy for Jira operations.
#
# Author: Cornelis Networks
#
##########################################################################################


class Error(Exception):
    '''
    Base class for exceptions in this package.
    '''
    def __init__(self, message):
        self.message = message
        super().__init__(self.message)


class JiraConnectionError(Error):
    '''
    Exception raised when Jira connection fails.
    '''
    def __init__(self, message):
        super().__init__(f'Jira connection failed: {message}')


class JiraCredentialsError(Error):
    '''
    Exception raised when Jira credentials are missing or invalid.
    '''
    def __init__(self, message):
        super().__init__(f'Jira credentials error: {message}')


class IssueNotFoundError(Error):
    '''
    Exception raised when an issue key does not resolve to an issue.
    '''
    def __init__(self, key, detail=None):
        self.key = key
        message = f'Issue {key} not found'
        if detail:
            message = f'{message}: {detail}'
        super().__init__(message)


class RemoteUnavailableError(Error):
    '''
    Exception raised when the Jira service cannot be reached or fails a request.
    '''
    def __init__(self, message, key=None, status_code=None):
        self.key = key
        self.status_code = status_code
        super().__init__(f'Jira request failed: {message}')


class InvalidArgumentError(Error):
    '''
    Exception raised for missing parameters, unknown actions or unavailable transitions.
    '''
    pass


class ExportError(Error):
    '''
    Exception raised when writing an export to its sink fails.
    '''
    def __init__(self, message):
        super().__init__(f'Export failed: {message}')
