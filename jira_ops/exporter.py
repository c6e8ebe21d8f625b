##########################################################################################
#
# Module: jira_ops/exporter.py
#
# Description: Export of resolved E2E dependency maps to CSV, JSON and Excel.
#
# Author: Cornelis Networks
#
##########################################################################################

import csv
import json
import logging
import os
import sys

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from jira_ops.errors import ExportError

# Logging config - follows jira_utils.py pattern
log = logging.getLogger(os.path.basename(sys.argv[0]))

CSV_HEADER = ['issue', 'summary', 'e2e']
DUMP_FORMATS = ['csv', 'json', 'excel']
STDOUT_DUMP = '-'


class CsvExporter:
    '''
    Writes a DependencyMap as CSV into a caller-owned text sink.

    One row per (issue, e2e) pair. An issue with no E2E tests gets a single
    row with an empty e2e field. All fields are quoted.
    '''

    def __init__(self, sink):
        self.sink = sink

    def export(self, dep_map):
        '''
        Input:
            dep_map: DependencyMap to write.

        Output:
            Number of data rows written.

        Raises:
            ExportError: If writing to the sink fails.
        '''
        log.debug(f'Entering CsvExporter.export(source_key={dep_map.source_key})')
        rows = 0
        try:
            writer = csv.writer(self.sink, quoting=csv.QUOTE_ALL, lineterminator='\n')
            writer.writerow(CSV_HEADER)
            for key, e2e in dep_map.pairs():
                writer.writerow([key, dep_map.summary_of(key), e2e.key if e2e else ''])
                rows += 1
        except (OSError, csv.Error) as e:
            raise ExportError(str(e)) from e

        log.debug(f'Wrote {rows} CSV rows')
        return rows


class JsonExporter:
    '''Writes DependencyMap.to_dict() as indented JSON into a text sink.'''

    def __init__(self, sink):
        self.sink = sink

    def export(self, dep_map):
        data = dep_map.to_dict()
        try:
            json.dump(data, self.sink, indent=2, ensure_ascii=False)
            self.sink.write('\n')
        except (OSError, TypeError, ValueError) as e:
            raise ExportError(str(e)) from e
        return len(data['issues'])


class ExcelExporter:
    '''
    Writes a DependencyMap to an .xlsx workbook (binary sink or path).

    Issue and E2E key cells are rendered as clickable Jira hyperlinks.
    '''

    def __init__(self, sink, jira_url=None):
        self.sink = sink
        self.jira_url = (jira_url or '').rstrip('/')

    def _link(self, cell, key, font):
        cell.value = key
        if key and self.jira_url:
            cell.hyperlink = f'{self.jira_url}/browse/{key}'
            cell.font = font

    def export(self, dep_map):
        wb = Workbook()
        ws = wb.active
        ws.title = 'E2E'

        header_font = Font(bold=True, color='FFFFFF')
        header_fill = PatternFill(start_color='1F4E79', end_color='1F4E79', fill_type='solid')
        header_alignment = Alignment(horizontal='center', vertical='center', wrap_text=True)
        thin_border = Border(
            left=Side(style='thin'),
            right=Side(style='thin'),
            top=Side(style='thin'),
            bottom=Side(style='thin'),
        )
        link_font = Font(color='0563C1', underline='single')

        for col_idx, name in enumerate(CSV_HEADER, 1):
            cell = ws.cell(row=1, column=col_idx, value=name)
            cell.font = header_font
            cell.fill = header_fill
            cell.alignment = header_alignment
            cell.border = thin_border

        row_idx = 1
        for key, e2e in dep_map.pairs():
            row_idx += 1
            issue_cell = ws.cell(row=row_idx, column=1)
            self._link(issue_cell, key, link_font)
            ws.cell(row=row_idx, column=2, value=dep_map.summary_of(key))
            e2e_cell = ws.cell(row=row_idx, column=3)
            self._link(e2e_cell, e2e.key if e2e else '', link_font)
            for col_idx in range(1, len(CSV_HEADER) + 1):
                ws.cell(row=row_idx, column=col_idx).border = thin_border

        # Approximate auto-fit, capped at 50 characters
        for col_idx in range(1, len(CSV_HEADER) + 1):
            max_len = len(CSV_HEADER[col_idx - 1])
            for r in range(2, min(row_idx, 51) + 1):
                value = ws.cell(row=r, column=col_idx).value
                if value is not None:
                    max_len = max(max_len, len(str(value)))
            ws.column_dimensions[ws.cell(row=1, column=col_idx).column_letter].width = min(max(max_len + 2, 10), 50)

        ws.freeze_panes = 'A2'
        ws.auto_filter.ref = ws.dimensions

        try:
            wb.save(self.sink)
        except OSError as e:
            raise ExportError(str(e)) from e
        return row_idx - 1


def read_dependency_csv(stream):
    '''
    Parse a CSV produced by CsvExporter back into issue -> set of e2e keys.

    Placeholder rows (empty e2e) yield an empty set for their issue.

    Raises:
        ValueError: If the header does not match the export format.
    '''
    reader = csv.reader(stream)
    header = next(reader, None)
    if header != CSV_HEADER:
        raise ValueError(f'Unexpected CSV header: {header}. Expected: {CSV_HEADER}')

    result = {}
    for row in reader:
        if not row:
            continue
        key, _summary, e2e = row
        bucket = result.setdefault(key, set())
        if e2e:
            bucket.add(e2e)
    return result


def output_path_for(dump_file, dump_format):
    '''Add the format's extension to dump_file when missing (excel -> .xlsx).'''
    ext = 'xlsx' if dump_format == 'excel' else dump_format
    if dump_file.endswith(f'.{ext}'):
        return dump_file
    return f'{dump_file}.{ext}'


def export_dependency_map(dep_map, dump_file, dump_format='csv', jira_url=None):
    '''
    Write a dependency map to a file, or CSV to stdout when dump_file is '-'.

    The sink is opened and closed here; if the export fails the partial file
    is removed and the error propagates.

    Input:
        dep_map: DependencyMap to export.
        dump_file: Output filename (extension added automatically) or '-'.
        dump_format: 'csv', 'json' or 'excel'.
        jira_url: Base URL for Excel hyperlinks.

    Output:
        Path written, or '-' for stdout.

    Raises:
        ExportError: If the sink cannot be opened or written.
        ValueError: For an unknown dump_format or stdout with a non-CSV format.
    '''
    log.debug(f'Entering export_dependency_map(dump_file={dump_file}, dump_format={dump_format})')
    if dump_format not in DUMP_FORMATS:
        raise ValueError(f'Unknown dump format: {dump_format}. Expected one of {DUMP_FORMATS}')

    if dump_file == STDOUT_DUMP:
        if dump_format != 'csv':
            raise ValueError('Only csv can be written to stdout')
        CsvExporter(sys.stdout).export(dep_map)
        sys.stdout.flush()
        return STDOUT_DUMP

    output_path = output_path_for(dump_file, dump_format)
    try:
        if dump_format == 'excel':
            sink = open(output_path, 'wb')
        else:
            sink = open(output_path, 'w', newline='', encoding='utf-8')
    except OSError as e:
        raise ExportError(f'{output_path}: {e}') from e

    if dump_format == 'excel':
        exporter = ExcelExporter(sink, jira_url)
    elif dump_format == 'json':
        exporter = JsonExporter(sink)
    else:
        exporter = CsvExporter(sink)

    try:
        with sink:
            rows = exporter.export(dep_map)
    except ExportError:
        _discard(output_path)
        raise
    except OSError as e:
        # Raised when the final flush on close fails
        _discard(output_path)
        raise ExportError(f'{output_path}: {e}') from e

    log.info(f'Wrote {rows} rows ({dump_format}) to: {output_path}')
    return output_path


def _discard(path):
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        log.warning(f'Could not remove partial export {path}: {e}')
