"""
Per-source import settings.

Each source names its frame-side extractor, the clicks needed before its
data shows, how readiness is judged and how long its tab needs to settle.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import Config, SOURCE_CALENDAR, SOURCE_REPORT_GRID, SOURCE_TICKETS
from .extractors import extract_calendar, extract_report_grid, extract_tickets
from .navigation import click_lists_tab, click_tickets_sidebar
from .readiness import report_grid_ready, tickets_table_ready
from .selectors import ReportGridSelectors, TicketSelectors


@dataclass
class SourceConfig:
    """
    How to import one source.

    Attributes:
        key: Source name (report-grid, calendar, tickets)
        url_prefix: Prefix identifying an already-open tab of the source
        url: URL opened when no such tab exists
        extract: Frame-side extractor
        all_frames: Run extractor, steps and predicate in every frame
        settle_delay: Wait after the tab is opened, in seconds
        navigation_steps: Frame-side click steps, in order
        readiness: Frame-side readiness predicate (None to skip polling)
        fail_on_readiness_timeout: Treat a readiness timeout as an error
        app_frame_patterns: URL substrings of the source's own frames
    """
    key: str
    url_prefix: str
    url: str
    extract: Callable
    all_frames: bool
    settle_delay: float
    navigation_steps: List[Callable] = field(default_factory=list)
    readiness: Optional[Callable] = None
    fail_on_readiness_timeout: bool = False
    app_frame_patterns: List[str] = field(default_factory=list)


def default_sources(config: Config) -> Dict[str, SourceConfig]:
    """
    Build the settings of every known source from the configuration.

    Returns:
        Mapping of source name to SourceConfig
    """
    return {
        SOURCE_REPORT_GRID: SourceConfig(
            key=SOURCE_REPORT_GRID,
            url_prefix=config.report_grid_prefix,
            url=config.report_grid_url,
            extract=extract_report_grid,
            all_frames=True,
            settle_delay=config.settle_delay,
            readiness=report_grid_ready,
            app_frame_patterns=ReportGridSelectors.APP_FRAME_PATTERNS,
        ),
        SOURCE_CALENDAR: SourceConfig(
            key=SOURCE_CALENDAR,
            url_prefix=config.calendar_prefix,
            url=config.calendar_url,
            extract=extract_calendar,
            all_frames=False,
            settle_delay=config.calendar_settle_delay,
        ),
        SOURCE_TICKETS: SourceConfig(
            key=SOURCE_TICKETS,
            url_prefix=config.tickets_prefix,
            url=config.tickets_url,
            extract=extract_tickets,
            all_frames=True,
            settle_delay=config.settle_delay,
            navigation_steps=[click_lists_tab, click_tickets_sidebar],
            readiness=tickets_table_ready,
            fail_on_readiness_timeout=True,
            app_frame_patterns=TicketSelectors.PREFERRED_FRAME_PATTERNS,
        ),
    }
