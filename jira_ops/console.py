##########################################################################################
#
# Module: jira_ops/console.py
#
# Description: User-facing console output that respects quiet mode and is
#              mirrored into the log file.
#
# Author: Cornelis Networks
#
##########################################################################################

import logging
import os
import sys

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

# Output control - set by the CLI after argument parsing
_quiet_mode = False
_file_handler = None
_output_stream = None


def set_quiet_mode(quiet):
    global _quiet_mode
    _quiet_mode = bool(quiet)


def set_file_handler(handler):
    '''Route copies of user-facing output to this handler (usually the log file).'''
    global _file_handler
    _file_handler = handler


def set_output_stream(stream):
    '''Send user-facing output to stream instead of stdout (None restores stdout).'''
    global _output_stream
    _output_stream = stream


def output(message='', stream=None):
    '''
    Print user-facing output, respecting quiet mode.
    Always logs to file regardless of quiet mode.

    For tables and user-facing output:
    - stdout: Clean output without logger prefix (via print)
    - log file: Full logger format with timestamps (written directly to file handler)

    Input:
        message: String to output (default empty for blank line).
        stream: Text stream overriding the configured output stream.

    Output:
        None; prints to stdout (or the configured stream) unless in quiet mode.
    '''
    # Log to file only (bypass the console handler by writing directly to the file handler)
    if message and _file_handler is not None:
        record = logging.LogRecord(
            name=log.name,
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg=f'OUTPUT: {message}',
            args=(),
            exc_info=None,
            func='output'
        )
        _file_handler.emit(record)

    if not _quiet_mode:
        print(message, file=stream or _output_stream)
