"""
DOM selectors and text patterns for the three source applications.

The source pages are undocumented and change between render states, so each
source has several selector sets ordered from most to least specific.

IMPORTANT: These selectors were taken from the live applications.
If a page's DOM structure changes, this module will need to be updated.
"""

from typing import List


class LoginSelectors:
    """Signals that a frame is showing a login wall instead of data."""

    INPUTS = [
        'input[name="username"]',
        'input[name="email"]',
        'input[type="email"]',
        'input[name="loginfmt"]',
    ]

    # Substring checked against document title and URL (lower-cased)
    TEXT_MARKER = 'login'


class ReportGridSelectors:
    """
    Selectors for the CRM Analytics (Wave) report grid.

    The report renders a widget that gains the ``widgetReady`` and
    ``finalState`` classes once the data grid is complete. Cell values are
    exposed through ``aria-label`` on ``div.wave-table-cell-text`` in the form
    "Column Header: Value", where the header may itself be compound
    ("Project (Rollup): Project Name: Acme | Redesign 2025").
    """

    WIDGET = 'div.report-table-widget'
    WIDGET_READY_CLASSES = ['widgetReady', 'finalState']
    FULL_TABLE = 'table.data-grid-full-table'
    GRID_CELL = 'td[role="gridcell"]'
    CELL_TEXT = 'div.wave-table-cell-text'

    # Second segments of an aria-label that are part of the header
    KNOWN_FIELD_NAMES = [
        'project name',
        'color block',
        'tag',
        'project setup notes',
        'owner name',
        'project task name',
        'active project sharepoint folder link',
    ]

    GRAND_TOTAL_MARKERS = ['Grand Total', 'lightning-table-grand-total-cell']

    # Legacy report layout: pinned group columns are flagged per cell
    FIXED_CELL = 'td[data-fixed-column="true"]'
    SCROLL_CELL = 'td[data-fixed-column="false"]'

    # Candidate tables for the semantic-header fallback, most specific first
    TABLE_CANDIDATES = [
        '[data-grid-full-table]',
        'table.data-grid-full-table',
        'table.slds-table',
        'table[role="grid"]',
    ]

    # App frames (report iframes) win ties between frames with data
    APP_FRAME_PATTERNS = ['vf.force.com', 'lightningReportApp.app']


class TicketSelectors:
    """
    Selectors for the ticketing app (Visualforce iframe inside the CRM).

    The tickets list is reached by clicking the "Lists" tab, then the
    "Tickets" item in the sidebar.
    """

    SOBJECT_TABLE = 'cc-sobject-table'
    SOBJECT_ROWS = 'tbody tr[cctablerow], tbody tr'
    HEADER_ROW = 'thead tr, tr:first-child'
    DATA_ROWS = 'tbody tr, tr:not(:first-child)'
    # A loaded row has more cells than a "Loading…" or "No items" placeholder
    MIN_READY_CELLS = 2
    RICH_TEXT = 'div.slds-rich-text-editor__output[title]'

    # Column order of the structured tickets table
    COL_STATUS = 0
    COL_DUE_DATE = 2
    COL_NAME = 3
    COL_PROJECT = 4
    COL_DESCRIPTION = 5
    COL_PRIORITY = 6
    COL_CREATED = 7
    COL_COMPLETED = 8

    STATUS_ERROR_ICON = '.slds-icon-text-error'
    STATUS_WARNING_ICON = '.slds-icon-text-warning'

    # Generic table rows used by the legacy fallback
    GENERIC_ROWS = 'table tbody tr, tr.dataRow, tr[class*="Row"]'

    # Step 1: the "Lists" tab
    LISTS_TAB_LINK = 'a.slds-tabs_default__link[href*="lists"]'
    TAB_CANDIDATES = '[role="tab"], a.slds-tabs_default__link, button[class*="tab"]'

    # Step 2: the "Tickets" sidebar entry
    SIDEBAR_ITEMS = '.slds-nav-vertical__item, [class*="nav"][class*="item"], li[role="menuitem"]'
    BADGES = '[class*="badge"], [class*="count"], span[class*="pill"]'

    CLICKABLE = 'a, button, [role="button"]'

    # Card-like elements for the permissive fallback
    CARD_CANDIDATES = '[class*="ticket"], [class*="task"], [class*="card"]'

    # URL substrings that identify a frame of the ticketing application
    APP_FRAME_PATTERNS = ['vf.force.com', 'project_cloud', 'lightning']

    # Frames that win ties between frames with data
    PREFERRED_FRAME_PATTERNS = ['vf.force.com', 'project_cloud']


class CalendarSelectors:
    """Selectors for the web calendar week view."""

    # Event elements in the week grid, most specific first
    EVENT_CANDIDATES = [
        '[data-calitemid][aria-label]',
        '[data-calitemid] [aria-label]',
        'div[role="button"][aria-label]',
    ]

    ANY_LABELLED = '[aria-label]'

    # Minimum label length for the permissive scan
    MIN_LABEL_LENGTH = 20


# Text that marks app chrome picked up by permissive scans.
# Matched case-insensitively as substrings.
NAV_CHROME_PATTERNS: List[str] = [
    'dashboards',
    'sidebar',
    'navigator',
    'tab-nav',
    'main-nav',
    'breadcrumb',
]

# Plausible card text contains a capitalized word followed by another capital
CAPITALIZED_PAIR_PATTERN = r'[A-Z][a-z]+\s+[A-Z]'

CARD_TEXT_MIN_LENGTH = 5
CARD_TEXT_MAX_LENGTH = 300
