"""
Readiness predicates and the bounded poller that evaluates them.

A predicate is a top-level async function of one ``Frame`` that answers
"has this page finished rendering its data?". Predicates never raise; any
error counts as "not ready yet".
"""

import asyncio

from playwright.async_api import Frame, Page

from .field_parser import headers_look_like_tickets
from .logging_utils import get_logger
from .selectors import ReportGridSelectors, TicketSelectors


async def report_grid_ready(frame: Frame) -> bool:
    """The Wave widget reached its final state with a data row, or a legacy report table is present."""
    try:
        widget = await frame.query_selector(ReportGridSelectors.WIDGET)
        if widget is not None:
            classes = ((await widget.get_attribute('class')) or '').split()
            if all(c in classes for c in ReportGridSelectors.WIDGET_READY_CLASSES):
                cell = await widget.query_selector(
                    f"{ReportGridSelectors.FULL_TABLE} {ReportGridSelectors.GRID_CELL}"
                )
                return cell is not None
            return False

        return await frame.query_selector(ReportGridSelectors.FIXED_CELL) is not None
    except Exception:
        return False


async def _first_data_row_filled(container, row_selector: str) -> bool:
    """The first row with data cells has more than the minimum cell count."""
    for row in await container.query_selector_all(row_selector):
        cells = await row.query_selector_all('td')
        if cells:
            return len(cells) > TicketSelectors.MIN_READY_CELLS
    return False


async def tickets_table_ready(frame: Frame) -> bool:
    """The structured tickets table, or a table with ticket-like headers, has a filled data row."""
    try:
        table = await frame.query_selector(TicketSelectors.SOBJECT_TABLE)
        if table is not None and await _first_data_row_filled(table, TicketSelectors.SOBJECT_ROWS):
            return True

        for table in await frame.query_selector_all('table'):
            header_row = await table.query_selector(TicketSelectors.HEADER_ROW)
            if header_row is None or not headers_look_like_tickets((await header_row.text_content()) or ''):
                continue
            if await _first_data_row_filled(table, TicketSelectors.DATA_ROWS):
                return True
        return False
    except Exception:
        return False


async def poll_readiness(executor, page: Page, predicate, all_frames: bool,
                         timeout: float, interval: float) -> bool:
    """
    Evaluate ``predicate`` every ``interval`` seconds until it holds or ``timeout`` passes.

    Args:
        executor: PageExecutor used to run the predicate in the page
        page: Page to evaluate
        predicate: Top-level async function of one Frame returning bool
        all_frames: Evaluate in every frame (any True means ready)
        timeout: Maximum wait in seconds
        interval: Seconds between evaluations

    Returns:
        True if the page became ready, False on timeout
    """
    logger = get_logger()
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    polls = 0

    while True:
        polls += 1
        results = await executor.execute(page, predicate, all_frames=all_frames)
        if any(r.value is True for r in results):
            logger.debug(f"Ready after {polls} poll(s)")
            return True

        if loop.time() + interval >= deadline:
            logger.debug(f"Not ready after {polls} poll(s) ({timeout:.0f}s)")
            return False

        await asyncio.sleep(interval)
