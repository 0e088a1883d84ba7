"""
Page extractors for the three sources.

Each extractor is a top-level async function that takes a single Playwright
``Frame`` and returns a JSON-serializable dict::

    {'needs_login': bool, 'data': [record, ...], 'error': str | None, 'diag': {...}}

Extractors keep no state between calls and capture nothing from the caller,
so the page-execution layer can run them in any frame, in any order. They
never raise: every failure becomes the ``error`` field.

DOM reading is kept in the async functions; turning the row snapshots into
records is done by the plain ``build_*`` functions below them.
"""

import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from playwright.async_api import ElementHandle, Frame

from .field_parser import (
    GroupTracker,
    carry_group_values,
    headers_look_like_tickets,
    is_group_value,
    is_plausible_card_text,
    looks_like_event_label,
    map_report_columns,
    map_ticket_columns,
    parse_aria_label,
    parse_hours,
    parse_revision_description,
)
from .selectors import (
    CalendarSelectors,
    LoginSelectors,
    ReportGridSelectors,
    TicketSelectors,
)


VARIANT_REVISION = 'revision'
VARIANT_LEGACY = 'legacy'

_LEADING_DATE = re.compile(r'^([\d/]+)')
_LEADING_TASK = re.compile(r'^([^(]+)')
_MONTH_DAY = re.compile(r'\d{1,2}/\d{1,2}')


# ── Result helpers ───────────────────────────────────────

def _result(data: List[Any], diag: Dict[str, Any], error: Optional[str] = None) -> Dict[str, Any]:
    return {'needs_login': False, 'data': data, 'error': error, 'diag': diag}


def _login_result(diag: Dict[str, Any]) -> Dict[str, Any]:
    return {'needs_login': True, 'data': [], 'error': None, 'diag': diag}


def _exception_result(exc: Exception) -> Dict[str, Any]:
    return _result([], {'exception': str(exc)[:200]}, error=f"Extraction error: {exc}")


# ── DOM helpers ──────────────────────────────────────────

async def _text(handle: Optional[ElementHandle]) -> str:
    if handle is None:
        return ''
    return ((await handle.text_content()) or '').strip()


async def _attr(handle: Optional[ElementHandle], name: str) -> str:
    if handle is None:
        return ''
    return (await handle.get_attribute(name)) or ''


async def _child_attr(handle: ElementHandle, selector: str, name: str) -> str:
    return await _attr(await handle.query_selector(selector), name)


async def _has_classes(handle: ElementHandle, classes: List[str]) -> bool:
    present = (await _attr(handle, 'class')).split()
    return all(c in present for c in classes)


async def detect_login(frame: Frame) -> bool:
    """Check for a login wall: credential inputs, or "login" in the title or URL."""
    for selector in LoginSelectors.INPUTS:
        if await frame.query_selector(selector) is not None:
            return True
    title = (await frame.title()).lower()
    return LoginSelectors.TEXT_MARKER in title or LoginSelectors.TEXT_MARKER in frame.url.lower()


async def _base_diag(frame: Frame) -> Dict[str, Any]:
    return {
        'url': frame.url[:120],
        'title': (await frame.title())[:60],
        'tables': len(await frame.query_selector_all('table')),
        'iframes': len(await frame.query_selector_all('iframe')),
        'timestamp': datetime.now().isoformat(timespec='seconds'),
    }


# ═══════════════════════════════════════════════════════
# Report grid
# ═══════════════════════════════════════════════════════

async def extract_report_grid(frame: Frame) -> Dict[str, Any]:
    """
    Extract assignment rows from the CRM report grid.

    Strategies, most specific first:
      1. Wave report widget in its final state (aria-label cell values)
      2. Legacy report table with pinned ``data-fixed-column`` cells
      3. Any table whose header row names the report columns
    """
    try:
        diag = await _base_diag(frame)
        if await detect_login(frame):
            return _login_result(diag)

        result = await _report_grid_from_widget(frame, diag)
        if result is not None:
            return result

        result = await _report_grid_from_fixed_columns(frame, diag)
        if result is not None:
            return result

        return await _report_grid_from_headers(frame, diag)

    except Exception as e:
        return _exception_result(e)


async def _report_grid_from_widget(frame: Frame, diag: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    widget = await frame.query_selector(ReportGridSelectors.WIDGET)
    if widget is None or not await _has_classes(widget, ReportGridSelectors.WIDGET_READY_CLASSES):
        return None

    table = await widget.query_selector(ReportGridSelectors.FULL_TABLE)
    if table is None:
        return None

    diag['strategy'] = 'wave-widget'
    rows = await table.query_selector_all('tr')
    if not rows:
        return _result([], diag, error='No rows in report table')

    snapshots = []
    for row in rows:
        snapshots.append(await _snapshot_wave_row(row))

    records, counts = build_wave_records(snapshots)
    diag['total_rows'] = len(rows)
    diag.update(counts)
    return _result(records, diag)


async def _snapshot_wave_row(row: ElementHandle) -> Dict[str, Any]:
    if await row.query_selector('th') is not None:
        return {'header': True, 'cells': [], 'text': ''}

    cells = []
    for cell in await row.query_selector_all(ReportGridSelectors.GRID_CELL):
        text_div = await cell.query_selector(ReportGridSelectors.CELL_TEXT)
        div = text_div or await cell.query_selector('div')
        link = await cell.query_selector('a')
        cells.append({
            'aria_label': await _attr(div, 'aria-label'),
            'tooltip': await _attr(div, 'data-tooltip'),
            'text': await _text(text_div) if text_div is not None else await _text(cell),
            'link_href': await _attr(link, 'href'),
            'link_data_id': await _attr(link, 'data-id'),
        })

    return {'header': False, 'cells': cells, 'text': await _text(row)}


def build_wave_records(rows: List[Dict[str, Any]]):
    """
    Build report records from Wave grid row snapshots.

    End Date (first column) and Task (second column) are group-carrying:
    they are shown once per block of rows. When a row renders fewer cells
    than the widest row, the missing leading cells are those grouped columns.

    Args:
        rows: Dicts with ``header``, ``cells`` and ``text`` keys

    Returns:
        Tuple of (records, counts)
    """
    end_dates = GroupTracker()
    task_types = GroupTracker()
    width = max((len(r['cells']) for r in rows if not r.get('header')), default=0)

    records = []
    skipped = 0

    for row in rows:
        cells = row.get('cells') or []
        if row.get('header') or not cells:
            skipped += 1
            continue

        cell_data = {}
        project_link = None
        for cell in cells:
            parsed = parse_aria_label(cell.get('aria_label', ''))
            if parsed is not None:
                cell_data[parsed[0]] = parsed[1]
            if cell.get('link_href') and project_link is None:
                project_link = cell

        row_text = row.get('text', '')
        if any(marker in row_text for marker in ReportGridSelectors.GRAND_TOTAL_MARKERS):
            skipped += 1
            continue

        missing = width - len(cells)
        if missing <= 0:
            end_dates.update(cells[0].get('text'))
        task_index = 1 - max(missing, 0)
        if 0 <= task_index < len(cells):
            task_cell = cells[task_index]
            task_types.update(task_cell.get('text'), extra=task_cell.get('link_data_id') or '')

        if not end_dates.has_value or not task_types.has_value:
            skipped += 1
            continue

        fields = _fields_from_cell_data(cell_data)
        if not fields['project_name']:
            last = cells[-1]
            fields['project_name'] = last.get('text') or last.get('tooltip') or ''

        if not fields['project_name']:
            skipped += 1
            continue

        records.append({
            'end_date': end_dates.current,
            'task_type': task_types.current,
            'task_id': task_types.extra,
            'project_name': fields['project_name'],
            'project_id': project_link.get('link_data_id', '') if project_link else '',
            'color_block': fields['color_block'],
            'tag': fields['tag'],
            'setup_notes': fields['setup_notes'],
            'owner_name': fields['owner_name'],
        })

    return records, {'processed_rows': len(records), 'skipped_rows': skipped}


def _fields_from_cell_data(cell_data: Dict[str, str]) -> Dict[str, str]:
    fields = {'project_name': '', 'color_block': '', 'tag': '', 'setup_notes': '', 'owner_name': ''}
    for key, value in cell_data.items():
        if 'owner' in key:
            fields['owner_name'] = value
        elif 'color' in key:
            fields['color_block'] = value
        elif 'tag' in key:
            fields['tag'] = value
        elif 'setup' in key or 'notes' in key:
            fields['setup_notes'] = value
        elif 'project' in key and 'name' in key and 'task' not in key:
            if not fields['project_name']:
                fields['project_name'] = value
    return fields


async def _report_grid_from_fixed_columns(frame: Frame, diag: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    table = await frame.query_selector(f'table:has({ReportGridSelectors.FIXED_CELL})')
    if table is None:
        return None

    diag['strategy'] = 'fixed-column'
    snapshots = []
    for row in await table.query_selector_all('tr'):
        snapshots.append({
            'fixed': [await _text(c) for c in await row.query_selector_all(ReportGridSelectors.FIXED_CELL)],
            'data': [await _text(c) for c in await row.query_selector_all(ReportGridSelectors.SCROLL_CELL)],
        })

    records = build_fixed_column_records(snapshots)
    diag['processed_rows'] = len(records)
    return _result(records, diag)


def build_fixed_column_records(rows: List[Dict[str, List[str]]]) -> List[Dict[str, str]]:
    """
    Build report records from a legacy table with pinned group columns.

    Pinned cells hold "2/10/2026 (3)" style end dates and "Design Setup (2)"
    style task names; the counts in parentheses are dropped.
    """
    end_dates = GroupTracker()
    task_types = GroupTracker()
    records = []

    for row in rows:
        fixed = row.get('fixed') or []
        data = row.get('data') or []

        if len(fixed) >= 1 and is_group_value(fixed[0]):
            m = _LEADING_DATE.match(fixed[0].strip())
            if m:
                end_dates.update(m.group(1))
        if len(fixed) >= 2 and is_group_value(fixed[1]):
            m = _LEADING_TASK.match(fixed[1].strip())
            if m:
                task_types.update(m.group(1).strip())

        if not end_dates.has_value or not task_types.has_value:
            continue

        project_name = data[0] if data else ''
        if not project_name or project_name.startswith('Total'):
            continue

        records.append({
            'end_date': end_dates.current,
            'task_type': task_types.current,
            'task_id': '',
            'project_name': project_name,
            'project_id': '',
            'color_block': _at(data, 1),
            'tag': _at(data, 2),
            'setup_notes': _at(data, 3),
            'owner_name': _at(data, 4),
        })

    return records


def _at(values: List[str], index: Optional[int]) -> str:
    if index is None or index >= len(values):
        return ''
    return values[index]


async def _report_grid_from_headers(frame: Frame, diag: Dict[str, Any]) -> Dict[str, Any]:
    table = None
    for selector in ReportGridSelectors.TABLE_CANDIDATES:
        table = await frame.query_selector(selector)
        if table is not None:
            break

    if table is None:
        for candidate in await frame.query_selector_all('table'):
            if len(await candidate.query_selector_all('tr')) > 2:
                table = candidate
                break

    if table is None:
        diag['strategy'] = 'none'
        diag['error'] = 'no table found by any strategy'
        return _result([], diag, error='Report table not found')

    diag['strategy'] = 'header-match'
    headers, rows = await _read_table(table)
    records = build_header_mapped_records(headers, rows)
    diag['processed_rows'] = len(records)
    return _result(records, diag)


async def _read_table(table: ElementHandle):
    """Read a generic table as (header texts, list of row cell texts)."""
    header_row = await table.query_selector('thead tr') or await table.query_selector('tr')
    headers = []
    if header_row is not None:
        headers = [await _text(c) for c in await header_row.query_selector_all('th, td')]

    body_rows = await table.query_selector_all('tbody tr')
    if not body_rows:
        body_rows = (await table.query_selector_all('tr'))[1:]

    rows = []
    for row in body_rows:
        cells = await row.query_selector_all('td')
        if cells:
            rows.append([await _text(c) for c in cells])
    return headers, rows


def build_header_mapped_records(headers: List[str], rows: List[List[str]]) -> List[Dict[str, str]]:
    """
    Build report records from a generic table, locating columns by header text.

    Falls back to the report's usual column order when no header matches.
    End date and task columns carry forward through grouped rows.
    """
    col_map = map_report_columns(headers)
    if not col_map:
        col_map = {'end_date': 0, 'task_type': 1, 'project_name': 2,
                   'color_block': 3, 'tag': 4, 'setup_notes': 5}

    raw_rows = []
    for cells in rows:
        if len(cells) < 3:
            continue
        project_name = _at(cells, col_map.get('project_name'))
        if not project_name or project_name.startswith('Total'):
            continue
        raw_rows.append({
            'end_date': _at(cells, col_map.get('end_date')),
            'task_type': _at(cells, col_map.get('task_type')),
            'task_id': '',
            'project_name': project_name,
            'project_id': '',
            'color_block': _at(cells, col_map.get('color_block')),
            'tag': _at(cells, col_map.get('tag')),
            'setup_notes': _at(cells, col_map.get('setup_notes')),
            'owner_name': _at(cells, col_map.get('owner_name')),
        })

    return carry_group_values(raw_rows, ['end_date', 'task_type'])


# ═══════════════════════════════════════════════════════
# Tickets
# ═══════════════════════════════════════════════════════

async def extract_tickets(frame: Frame) -> Dict[str, Any]:
    """
    Extract revision tickets from the ticketing app.

    Strategies, most specific first:
      1. The app's structured ``cc-sobject-table`` (records tagged "revision")
      2. Generic tables: header matching, then a plain row scan ("legacy")
      3. Inside an app frame only: card-like elements that pass the
         chrome denylist and plausibility filter ("legacy")
    """
    try:
        diag = await _base_diag(frame)
        if await detect_login(frame):
            return _login_result(diag)

        table = await frame.query_selector(TicketSelectors.SOBJECT_TABLE)
        if table is not None:
            diag['strategy'] = 'sobject-table'
            if await table.query_selector('tbody') is None:
                return _result([], diag, error='tbody not found in cc-sobject-table')
            rows = await table.query_selector_all(TicketSelectors.SOBJECT_ROWS)
            diag['rows_found'] = len(rows)
            records = await collect_revision_records(rows, diag)
            if records:
                return _result(records, diag)

        diag['strategy'] = 'table-scan'
        records = await _tickets_from_tables(frame, diag)
        if records:
            return _result(records, diag)

        url = frame.url
        if any(pattern in url for pattern in TicketSelectors.APP_FRAME_PATTERNS):
            diag['strategy'] = 'card-scan'
            texts = []
            for el in await frame.query_selector_all(TicketSelectors.CARD_CANDIDATES):
                texts.append(await _text(el))
            diag['card_elements'] = len(texts)
            records = build_card_records(texts)

        return _result(records, diag)

    except Exception as e:
        return _exception_result(e)


async def _snapshot_ticket_row(row: ElementHandle) -> Optional[Dict[str, Any]]:
    cells = await row.query_selector_all('td')
    if len(cells) < 3:
        return None

    def cell(index):
        return cells[index] if index < len(cells) else None

    snapshot: Dict[str, Any] = {}

    due = cell(TicketSelectors.COL_DUE_DATE)
    snapshot['due_date'] = await _child_attr(due, 'span[title]', 'title')

    name = cell(TicketSelectors.COL_NAME)
    if name is not None:
        snapshot['name'] = await _child_attr(name, 'div[title]', 'title') or await _text(name)

    project = cell(TicketSelectors.COL_PROJECT)
    if project is not None:
        link = await project.query_selector('a')
        snapshot['project'] = await _text(link) or await _text(project)
        snapshot['project_href'] = await _attr(link, 'href')

    description = cell(TicketSelectors.COL_DESCRIPTION)
    if description is not None:
        snapshot['description'] = (
            await _child_attr(description, TicketSelectors.RICH_TEXT, 'title')
            or await _text(description)
        )

    priority = cell(TicketSelectors.COL_PRIORITY)
    if priority is not None:
        snapshot['priority'] = await _child_attr(priority, 'span[title]', 'title') or await _text(priority)

    created = cell(TicketSelectors.COL_CREATED)
    if created is not None:
        snapshot['created_date'] = await _child_attr(created, 'span[title]', 'title') or await _text(created)

    completed = cell(TicketSelectors.COL_COMPLETED)
    if completed is not None:
        checkbox = await completed.query_selector('input[type="checkbox"]')
        snapshot['completed'] = await checkbox.is_checked() if checkbox is not None else False

    status = cell(TicketSelectors.COL_STATUS)
    if status is not None:
        if await status.query_selector(TicketSelectors.STATUS_ERROR_ICON) is not None:
            snapshot['status'] = 'overdue'
        elif await status.query_selector(TicketSelectors.STATUS_WARNING_ICON) is not None:
            snapshot['status'] = 'warning'
        else:
            snapshot['status'] = 'ok'

    return snapshot


async def collect_revision_records(rows: List[ElementHandle], diag: Dict[str, Any],
                                   snapshot_row=_snapshot_ticket_row) -> List[Dict[str, Any]]:
    """
    Snapshot each structured-table row and build its revision record.

    The table re-renders while it loads, so a row handle can go stale
    mid-read. Such a row is skipped and counted in ``diag['skipped_rows']``;
    the other rows are kept.
    """
    records = []
    skipped = 0
    for row in rows:
        try:
            snapshot = await snapshot_row(row)
        except Exception:
            skipped += 1
            continue
        record = build_revision_record(snapshot) if snapshot else None
        if record is not None:
            records.append(record)
    diag['skipped_rows'] = skipped
    return records


def build_revision_record(snapshot: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Build a "revision" ticket record from a structured-table row snapshot."""
    name = (snapshot.get('name') or '').strip()
    if len(name) < 2:
        return None

    description = snapshot.get('description') or ''
    parsed = parse_revision_description(description)

    return {
        'variant': VARIANT_REVISION,
        'name': name,
        'project': snapshot.get('project') or '',
        'project_href': snapshot.get('project_href') or '',
        'description': description,
        'hours': parsed['hours'],
        'due_date': snapshot.get('due_date') or '',
        'priority': snapshot.get('priority') or '',
        'created_date': snapshot.get('created_date') or '',
        'completed': bool(snapshot.get('completed')),
        'status': snapshot.get('status') or 'ok',
        'revision_label': parsed['revision_label'],
        'web_view_url': parsed['web_view_url'],
        'assignees': parsed['assignees'],
    }


async def _tickets_from_tables(frame: Frame, diag: Dict[str, Any]) -> List[Dict[str, Any]]:
    # Header matching over every table first
    for table in await frame.query_selector_all('table'):
        header_row = await table.query_selector('thead tr') or await table.query_selector('tr')
        if header_row is None or not headers_look_like_tickets(await _text(header_row)):
            continue
        headers, rows = await _read_table(table)
        records = build_header_mapped_tickets(headers, rows)
        if records:
            diag['strategy'] = 'header-match'
            return records

    # Plain row scan
    rows = await frame.query_selector_all(TicketSelectors.GENERIC_ROWS)
    diag['matched_rows'] = len(rows)
    records = []
    for row in rows:
        cells = [await _text(c) for c in await row.query_selector_all('td')]
        record = build_generic_ticket_record(cells, await _text(row))
        if record is not None:
            records.append(record)
    return records


def build_header_mapped_tickets(headers: List[str], rows: List[List[str]]) -> List[Dict[str, Any]]:
    """Build "legacy" ticket records from a table with ticket-like headers."""
    col_map = map_ticket_columns(headers)
    if not col_map:
        return []

    records = []
    for cells in rows:
        if len(cells) <= 2:
            continue
        project_name = _at(cells, col_map.get('project_name'))
        name = _at(cells, col_map.get('name'))
        if len(project_name) < 2 or project_name.startswith('Total'):
            continue
        description = _at(cells, col_map.get('description')) or name
        hours = parse_hours(_at(cells, col_map.get('estimated_hours')))
        if hours is None:
            hours = parse_revision_description(description)['hours'] or 1
        records.append({
            'variant': VARIANT_LEGACY,
            'project_name': project_name,
            'description': description or 'Revision',
            'estimated_hours': hours,
            'due_date': _at(cells, col_map.get('due_date')),
        })
    return records


def build_generic_ticket_record(cells: List[str], row_text: str) -> Optional[Dict[str, Any]]:
    """
    Build a "legacy" ticket record from an unlabelled table row.

    Column 0 is the project, column 1 the description; the first later cell
    that parses as hours and the first that looks like m/d are used.
    """
    if len(cells) < 2:
        return None
    if 'Total' in row_text:
        return None

    project_name = cells[0]
    if len(project_name) < 2:
        return None

    hours = 1.0
    for text in cells[2:]:
        parsed = parse_hours(text)
        if parsed is not None:
            hours = parsed
            break

    due_date = ''
    for text in cells[2:]:
        if _MONTH_DAY.search(text):
            due_date = text
            break

    return {
        'variant': VARIANT_LEGACY,
        'project_name': project_name,
        'description': cells[1] or 'Revision',
        'estimated_hours': hours,
        'due_date': due_date,
    }


def build_card_records(texts: List[str]) -> List[Dict[str, Any]]:
    """Keep plausible, non-chrome card texts as "legacy" ticket records."""
    records = []
    seen = set()
    for text in texts:
        t = (text or '').strip()
        if t in seen or not is_plausible_card_text(t):
            continue
        seen.add(t)
        records.append({
            'variant': VARIANT_LEGACY,
            'project_name': t[:80],
            'description': 'Revision',
            'estimated_hours': 1,
            'due_date': '',
        })
    return records


# ═══════════════════════════════════════════════════════
# Calendar
# ═══════════════════════════════════════════════════════

async def extract_calendar(frame: Frame) -> Dict[str, Any]:
    """
    Extract event labels from the calendar week view.

    Strategies, most specific first:
      1. Event elements of the week grid
      2. Any labelled element whose label looks like an event
    """
    try:
        diag = await _base_diag(frame)
        if await detect_login(frame):
            return _login_result(diag)

        for selector in CalendarSelectors.EVENT_CANDIDATES:
            labels = [await _attr(el, 'aria-label') for el in await frame.query_selector_all(selector)]
            records = build_calendar_records(labels, require_time=False)
            if records:
                diag['strategy'] = f'event-elements:{selector}'
                diag['labels'] = len(records)
                return _result(records, diag)

        diag['strategy'] = 'label-scan'
        labels = [await _attr(el, 'aria-label')
                  for el in await frame.query_selector_all(CalendarSelectors.ANY_LABELLED)]
        records = build_calendar_records(labels, require_time=True)
        diag['labels'] = len(records)
        return _result(records, diag)

    except Exception as e:
        return _exception_result(e)


def build_calendar_records(labels: List[str], require_time: bool) -> List[Dict[str, str]]:
    """De-duplicate event labels, optionally keeping only event-like ones."""
    records = []
    seen = set()
    for label in labels:
        label = (label or '').strip()
        if not label or label in seen:
            continue
        if require_time and not looks_like_event_label(label, CalendarSelectors.MIN_LABEL_LENGTH):
            continue
        seen.add(label)
        records.append({'label': label})
    return records
