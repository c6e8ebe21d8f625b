#!/usr/bin/env python3
##########################################################################################
#
# Script name: jira_cli.py
#
# Description: Command line front end for everyday Jira operations: fetch, link,
#              transition, assign, clone and move issues, and collect the
#              end-to-end (E2E) tests attached to an issue and its dependencies.
#
# Author: Cornelis Networks
#
# Credentials:
#   Set JIRA_EMAIL and JIRA_API_TOKEN in the environment or a .env file.
#   NEVER commit credentials to version control.
#
# Usage:
#   python jira_cli.py --help
#   python jira_cli.py -a GET -s PROJ-1
#   python jira_cli.py -a GET_E2ES -s PROJ-1 --recursive --dump-file e2es
#   python jira_cli.py -a CLONE -s PROJ-1,PROJ-2,PROJ-3
#
##########################################################################################

import argparse
import logging
import os
import sys
from datetime import date

from dotenv import load_dotenv

from config.settings import Settings, configure_logging
from jira_ops import console
from jira_ops.actions import ACTIONS, Action, ActionRequest, dispatch, parse_source_keys
from jira_ops.base import EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_SUCCESS, EXIT_USAGE
from jira_ops.client import IssueClient
from jira_ops.console import output
from jira_ops.errors import Error, InvalidArgumentError, JiraCredentialsError
from jira_ops.exporter import DUMP_FORMATS, STDOUT_DUMP

# Load environment variables from the default .env if present.
#
# --env reloads from another file with override=True; see handle_args().
load_dotenv(override=False)

# ****************************************************************************************
# Global data and configuration
# ****************************************************************************************

# Logging config
log = logging.getLogger(os.path.basename(sys.argv[0]))


def _actions_epilog():
    lines = ['Actions:']
    for action, spec in ACTIONS.items():
        lines.append(f'  {action.value:<24} {spec.description}')
    return '\n'.join(lines)


def build_parser():
    '''
    Build the argument parser.
    '''
    parser = argparse.ArgumentParser(
        description='Jira issue utilities: links, transitions, clones and E2E test maps',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=_actions_epilog() + '''

Credentials Setup:
  Set the following environment variables before running:
    export JIRA_EMAIL="your.email@cornelisnetworks.com"
    export JIRA_API_TOKEN="your_api_token_here"

Examples:
  %(prog)s -a GET -s PROJ-1                      Show PROJ-1 and its links
  %(prog)s -a LINK -s PROJ-1 -t PROJ-2 -l "Depends On"
                                                 Make PROJ-1 depend on PROJ-2
  %(prog)s -a GET_E2ES -s PROJ-1 --recursive     E2E tests of PROJ-1 and its dependencies
  %(prog)s -a GET_E2ES -s PROJ-1 -r --dump-file e2es
                                                 ... and write them to e2es.csv
  %(prog)s -a GET_E2ES -s PROJ-1 --dump-file -   Write the CSV to stdout
  %(prog)s -a ADVANCE_ISSUE -s PROJ-1 --transition "Start Progress"
  %(prog)s -a AUTO_TRANSITION_ISSUE -s PROJ-1 --status Done
  %(prog)s -a ASSIGN_TO -s PROJ-1 -u me
  %(prog)s -a CLONE -s PROJ-1,PROJ-2,PROJ-3      Clone three issues
  %(prog)s -a MOVE -s "PROJ-1 PROJ-2" -p OTHER   Copy two issues into OTHER

Exit codes:
  0 success, 1 failure, 2 usage error, 3 partial success (some keys failed)
        ''')
    parser.add_argument(
        '-v',
        '--verbose',
        action='store_true',
        help='Enable verbose output to stderr.')
    parser.add_argument(
        '-q',
        '--quiet',
        action='store_true',
        help='Minimal stdout.')
    parser.add_argument(
        '--env',
        type=str,
        default='.env',
        metavar='FILE',
        help='Path to dotenv file to load (default: .env).')
    parser.add_argument(
        '-a',
        '--action',
        type=str,
        required=True,
        metavar='ACTION',
        help='Action to perform (see Actions below).')
    parser.add_argument(
        '-s',
        '--source',
        type=str,
        required=True,
        metavar='KEYS',
        help='Source issue key. CLONE and MOVE accept several keys separated by commas, semicolons or spaces.')
    parser.add_argument(
        '-t',
        '--target',
        type=str,
        metavar='KEY',
        help='Target issue key (LINK).')
    parser.add_argument(
        '-l',
        '--link-type',
        type=str,
        metavar='TYPE',
        dest='link_type',
        help='Link type name, e.g. "Depends On" (LINK).')
    parser.add_argument(
        '-p',
        '--project',
        type=str,
        metavar='KEY',
        help='Destination project key (CLONE, MOVE).')
    parser.add_argument(
        '-r',
        '--recursive',
        action='store_true',
        help='Follow dependency links transitively (GET_E2ES).')
    parser.add_argument(
        '-u',
        '--user',
        type=str,
        metavar='USER',
        help='Assignee account id, "me", or "none" to unassign (ASSIGN_TO).')
    parser.add_argument(
        '--transition',
        type=str,
        metavar='NAME',
        help='Transition name (ADVANCE_ISSUE).')
    parser.add_argument(
        '--status',
        type=str,
        metavar='NAME',
        help='Target status (AUTO_TRANSITION_ISSUE).')
    parser.add_argument(
        '--comment',
        type=str,
        metavar='TEXT',
        help='Comment added after the transition (ADVANCE_ISSUE, BLOCK_ISSUE, UNBLOCK_ISSUE).')
    parser.add_argument(
        '--dump-file',
        type=str,
        metavar='FILE',
        dest='dump_file',
        help='Write the E2E map to FILE (extension added automatically); "-" writes CSV to stdout (GET_E2ES).')
    parser.add_argument(
        '--dump-format',
        type=str,
        choices=DUMP_FORMATS,
        default='csv',
        dest='dump_format',
        help='Output format for --dump-file (default: csv).')
    return parser


def handle_args(argv=None):
    '''
    Parse and validate command line arguments.

    Input:
        argv: Argument list (defaults to sys.argv[1:]).

    Output:
        argparse.Namespace; args.action is an Action member.

    Side Effects:
        Loads the --env file; exits with status 2 and usage on invalid arguments.
    '''
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.env and args.env != '.env':
        if not os.path.exists(args.env):
            parser.error(f'--env file not found: {args.env}')
        load_dotenv(dotenv_path=args.env, override=True)

    try:
        args.action = Action.from_name(args.action)
    except InvalidArgumentError as e:
        parser.error(e.message)

    args.source_keys = parse_source_keys(args.source)
    if not args.source_keys:
        parser.error('--source requires at least one issue key')

    if args.dump_file and args.action != Action.GET_E2ES:
        parser.error('--dump-file requires --action GET_E2ES')
    if args.dump_file == STDOUT_DUMP and args.dump_format != 'csv':
        parser.error('--dump-file - only supports --dump-format csv')
    if args.recursive and args.action != Action.GET_E2ES:
        parser.error('--recursive requires --action GET_E2ES')

    return args


def build_request(args):
    return ActionRequest(
        source_keys=args.source_keys,
        target=args.target,
        link_type=args.link_type,
        project=args.project.upper() if args.project else None,
        user=args.user,
        transition=args.transition,
        status=args.status,
        comment=args.comment,
        recursive=args.recursive,
        dump_file=args.dump_file,
        dump_format=args.dump_format,
    )


def run(args, settings):
    '''
    Connect, dispatch the action and map the outcome to an exit code.
    '''
    request = build_request(args)

    with IssueClient.connect(settings) as client:
        result = dispatch(args.action, client, request, settings)

    log.debug(f'Result: {result.to_dict()}')
    if result.is_partial:
        output(f'{args.action.value}: partial success '
               f'({len(result.successes)} succeeded, {len(result.failures)} failed)')
    return result.exit_code


def setup(args):
    '''
    Load and validate settings, then configure logging and console output.

    Output:
        Validated Settings instance.

    Raises:
        ValueError: If a setting is malformed or invalid.
    '''
    settings = Settings.from_env()
    settings.validate()

    fh = configure_logging(settings, verbose=args.verbose, quiet=args.quiet)
    console.set_file_handler(fh)

    log.info('++++++++++++++++++++++++++++++++++++++++++++++')
    log.info(f'+  {os.path.basename(sys.argv[0])}')
    log.info(f'+  Python Version: {sys.version.split()[0]}')
    log.info(f'+  Today is: {date.today()}')
    log.info(f'+  Jira URL: {settings.jira_url}')
    log.info(f'+  Action: {args.action.value} {", ".join(args.source_keys)}')
    log.info('++++++++++++++++++++++++++++++++++++++++++++++')
    log.debug(f'Settings: {settings.to_dict()}')
    return settings


# ****************************************************************************************
# Main
# ****************************************************************************************

def main(argv=None):
    '''
    Entrypoint that wires together dependencies and launches the CLI.

    Sequence:
        1. Parse command line arguments
        2. Load settings and configure logging
        3. Connect to Jira and execute the requested action

    Output:
        Exits with 0 on success, 3 on partial success, 1 on failure, 2 on usage errors.
    '''
    args = handle_args(argv)

    console.set_quiet_mode(args.quiet)
    # stdout carries only the CSV when dumping to it
    if args.dump_file == STDOUT_DUMP:
        console.set_output_stream(sys.stderr)

    try:
        settings = setup(args)
        exit_code = run(args, settings)

    except InvalidArgumentError as e:
        log.error(e.message)
        output('')
        output('ERROR: ' + e.message)
        output('')
        build_parser().print_usage(sys.stderr)
        exit_code = EXIT_USAGE

    except JiraCredentialsError as e:
        log.error(e.message)
        output('')
        output('ERROR: ' + e.message)
        output('')
        output('Please set the required environment variables:')
        output('  export JIRA_EMAIL="your.email@cornelisnetworks.com"')
        output('  export JIRA_API_TOKEN="your_api_token_here"')
        output('')
        exit_code = EXIT_FAILURE

    except Error as e:
        log.error(e.message)
        output('')
        output('ERROR: ' + e.message)
        output('')
        exit_code = EXIT_FAILURE

    except ValueError as e:
        log.error(f'{e}')
        output(f'ERROR: {e}')
        exit_code = EXIT_FAILURE

    except KeyboardInterrupt:
        output('\nOperation cancelled.')
        exit_code = EXIT_INTERRUPTED

    except Exception as e:
        log.error(f'Unexpected error: {e}', exc_info=True)
        output(f'ERROR: {e}')
        exit_code = EXIT_FAILURE

    if exit_code == EXIT_SUCCESS:
        log.info('Operation complete.')
    else:
        log.info(f'Operation finished with exit code {exit_code}.')
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
