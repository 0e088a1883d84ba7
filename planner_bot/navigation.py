"""
Navigation steppers for sources that need clicks before their data shows.

The ticketing app opens on its home view; the tickets list is two clicks
away ("Lists" tab, then "Tickets" in the sidebar). Each click is a step:
a top-level async function of one ``Frame`` that tries a chain of
strategies, most exact first, and returns a StepResult-shaped dict::

    {'clicked': bool, 'method': str, 'error': str | None, 'diag': {...}}

Steps never raise. Clicks are dispatched as DOM events so hidden or
partially covered elements still receive them.
"""

import asyncio
import re
from datetime import datetime
from typing import Any, Dict, List, Optional

from playwright.async_api import ElementHandle, Frame, Page

from .models import NavigationOutcome, StepResult
from .selectors import TicketSelectors


_LEADING_INT = re.compile(r'^\s*(\d+)')


def _step_diag(frame: Frame) -> Dict[str, Any]:
    return {'url': frame.url[:120], 'timestamp': datetime.now().isoformat(timespec='seconds')}


def _clicked(method: str, diag: Dict[str, Any], **extra) -> Dict[str, Any]:
    diag.update(extra)
    return {'clicked': True, 'method': method, 'error': None, 'diag': diag}


def _not_clicked(error: str, diag: Dict[str, Any]) -> Dict[str, Any]:
    return {'clicked': False, 'method': '', 'error': error, 'diag': diag}


async def _text(handle: ElementHandle) -> str:
    return ((await handle.text_content()) or '').strip()


async def _click(handle: ElementHandle):
    await handle.dispatch_event('click')


async def click_lists_tab(frame: Frame) -> Dict[str, Any]:
    """
    Step 1: open the "Lists" tab.

    Strategies:
      A. SLDS tab link whose href mentions "lists"
      B. A tab element whose text is "Lists"
      C. Any link or button whose text is "Lists"
    """
    try:
        diag = _step_diag(frame)

        tab = await frame.query_selector(TicketSelectors.LISTS_TAB_LINK)
        if tab is not None:
            await _click(tab)
            return _clicked('slds-tab-link-lists', diag)

        for candidate in await frame.query_selector_all(TicketSelectors.TAB_CANDIDATES):
            if (await _text(candidate)).lower() == 'lists':
                await _click(candidate)
                return _clicked('text-match-lists', diag)

        for candidate in await frame.query_selector_all(TicketSelectors.CLICKABLE):
            if (await _text(candidate)).lower() == 'lists':
                await _click(candidate)
                return _clicked('generic-lists-link', diag)

        return _not_clicked('Could not find Lists tab', diag)

    except Exception as e:
        return _not_clicked(str(e), {'exception': True})


async def click_tickets_sidebar(frame: Frame) -> Dict[str, Any]:
    """
    Step 2: open "Tickets" in the Lists sidebar.

    Strategies:
      A. Sidebar nav item mentioning "tickets" (its link child if it has one)
      B. Any short link, button or nav element containing "Tickets"
      C. A numeric count badge whose nav-item ancestor mentions "Tickets"
    """
    try:
        diag = _step_diag(frame)

        for item in await frame.query_selector_all(TicketSelectors.SIDEBAR_ITEMS):
            if 'tickets' in (await _text(item)).lower():
                link = await item.query_selector(TicketSelectors.CLICKABLE)
                if link is not None:
                    await _click(link)
                    return _clicked('slds-nav-tickets-link', diag)
                await _click(item)
                return _clicked('slds-nav-tickets-item', diag)

        for candidate in await frame.query_selector_all(f"{TicketSelectors.CLICKABLE}, [class*=\"nav\"]"):
            text = await _text(candidate)
            if text == 'Tickets' or ('Tickets' in text and len(text) < 50):
                await _click(candidate)
                return _clicked('text-match-tickets', diag, text=text[:40])

        for badge in await frame.query_selector_all(TicketSelectors.BADGES):
            badge_text = await _text(badge)
            m = _LEADING_INT.match(badge_text)
            if len(badge_text) >= 5 or m is None or int(m.group(1)) <= 0:
                continue
            parent = await badge.query_selector(
                'xpath=ancestor::*[self::a or self::li or contains(@class, "item") or contains(@class, "nav")][1]'
            )
            if parent is not None and 'Tickets' in await _text(parent):
                await _click(parent)
                return _clicked('badge-tickets', diag, count=badge_text)

        return _not_clicked('Could not find Tickets sidebar item', diag)

    except Exception as e:
        return _not_clicked(str(e), {'exception': True})


async def run_step(executor, page: Page, step, all_frames: bool = True) -> StepResult:
    """
    Run one step across the page's frames; the first frame that clicks wins.

    Returns:
        The winning StepResult, or the last failure if no frame clicked
    """
    frame_results = await executor.execute_until(
        page, step, all_frames=all_frames,
        accept=lambda value: isinstance(value, dict) and bool(value.get('clicked')),
    )

    last = StepResult(clicked=False, error='No frames evaluated')
    for fr in frame_results:
        if fr.error is not None:
            last = StepResult(clicked=False, error=fr.error)
            continue
        result = StepResult.from_frame(fr.value)
        if result.clicked:
            return result
        last = result
    return last


async def run_navigation(executor, page: Page, steps: List, config, logger,
                         all_frames: bool = True) -> NavigationOutcome:
    """
    Run navigation steps in order.

    Each step gets ``config.nav_attempts`` attempts with a linearly growing
    delay between them. A successful step is followed by a settle wait
    (longer after the first step). A step that never clicks ends the
    navigation.

    Args:
        executor: PageExecutor used to run the steps
        page: Page to navigate
        steps: Top-level async step functions, in order
        config: Configuration with the navigation timings
        logger: Logger (or source adapter) for progress messages

    Returns:
        NavigationOutcome
    """
    outcome = NavigationOutcome(succeeded=True)

    for index, step in enumerate(steps, 1):
        result: Optional[StepResult] = None

        for attempt in range(1, config.nav_attempts + 1):
            try:
                result = await run_step(executor, page, step, all_frames=all_frames)
            except Exception as e:
                result = StepResult(clicked=False, error=str(e))

            if result.clicked:
                logger.debug(f"Navigation step {index} clicked via {result.method}")
                break

            logger.debug(
                f"Navigation step {index} attempt {attempt}/{config.nav_attempts} "
                f"did not click: {result.error}"
            )
            if attempt < config.nav_attempts:
                await asyncio.sleep(config.nav_retry_delay * attempt)

        outcome.steps.append(result)

        if not result.clicked:
            outcome.succeeded = False
            outcome.failed_step = index
            logger.warning(f"Navigation step {index} failed after {config.nav_attempts} attempt(s)")
            break

        await asyncio.sleep(config.first_step_delay if index == 1 else config.step_delay)

    return outcome
