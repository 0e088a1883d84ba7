"""
Configuration for the weekly planner import tool.

This module centralizes configuration values including source URLs,
timing of the import protocol, and default settings.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


SOURCE_REPORT_GRID = 'report-grid'
SOURCE_CALENDAR = 'calendar'
SOURCE_TICKETS = 'tickets'

ALL_SOURCES = [SOURCE_REPORT_GRID, SOURCE_CALENDAR, SOURCE_TICKETS]


@dataclass
class Config:
    """
    Application configuration.

    All delays and timeouts are in seconds unless the name says otherwise.

    Attributes:
        report_grid_url: Full URL of the CRM report that lists the week's assignments
        report_grid_prefix: URL prefix used to reuse an already-open report tab
        calendar_url: Week view of the web calendar
        calendar_prefix: URL prefix used to reuse an already-open calendar tab
        tickets_url: Landing page of the ticketing app
        tickets_prefix: URL prefix used to reuse an already-open ticketing tab
        settle_delay: Wait after opening a slow source tab
        calendar_settle_delay: Wait after opening the calendar tab
        max_attempts: Extraction attempts per source
        retry_delay: Delay between extraction attempts
        poll_interval: Readiness poll interval
        readiness_timeout: Maximum readiness wait
        nav_attempts: Attempts per navigation step
        nav_retry_delay: Base delay between navigation attempts (grows linearly)
        first_step_delay: Wait after the first navigation step succeeds
        step_delay: Wait after each later navigation step succeeds
        import_timeout: Outer timeout for the whole import
        navigation_timeout_ms: Playwright page.goto timeout (milliseconds)
        headless: Whether to run browser in headless mode
        user_data_dir: Persistent browser profile (keeps logins between runs)
        sources: Sources to import
        week_of: Any date in the week to plan (defaults to today)
        verbose: Whether to enable verbose logging
    """
    report_grid_url: str = "https://acme.lightning.force.com/lightning/r/Report/00O000000000000AAA/view"
    report_grid_prefix: str = "https://acme.lightning.force.com/lightning/r/Report/"
    calendar_url: str = "https://outlook.office.com/calendar/view/week"
    calendar_prefix: str = "https://outlook.office"
    tickets_url: str = "https://acme.lightning.force.com/lightning/n/project_cloud__Gameplan"
    tickets_prefix: str = "https://acme.lightning.force.com/lightning/n/project_cloud"

    settle_delay: float = 8.0
    calendar_settle_delay: float = 3.0
    max_attempts: int = 12
    retry_delay: float = 5.0
    poll_interval: float = 1.0
    readiness_timeout: float = 30.0
    nav_attempts: int = 3
    nav_retry_delay: float = 3.0
    first_step_delay: float = 6.0
    step_delay: float = 4.0
    import_timeout: float = 300.0
    navigation_timeout_ms: int = 30000

    # Browser options
    headless: bool = False
    user_data_dir: str = ".planner_profile"

    # Run options
    sources: List[str] = field(default_factory=lambda: list(ALL_SOURCES))
    week_of: Optional[date] = None
    verbose: bool = False

    def validate(self):
        """
        Validate configuration.

        Raises:
            ValueError: If configuration is invalid
        """
        if not self.sources:
            raise ValueError("At least one source is required")

        unknown = [s for s in self.sources if s not in ALL_SOURCES]
        if unknown:
            raise ValueError(
                f"Unknown source(s): {', '.join(unknown)} "
                f"(expected one of: {', '.join(ALL_SOURCES)})"
            )

        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got: {self.max_attempts}")

        if self.nav_attempts < 1:
            raise ValueError(f"nav_attempts must be at least 1, got: {self.nav_attempts}")

        if self.poll_interval <= 0:
            raise ValueError(f"poll_interval must be positive, got: {self.poll_interval}")

        for name in ('settle_delay', 'calendar_settle_delay', 'retry_delay',
                     'readiness_timeout', 'nav_retry_delay', 'first_step_delay',
                     'step_delay'):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} cannot be negative")

        if self.import_timeout <= 0:
            raise ValueError(f"import_timeout must be positive, got: {self.import_timeout}")

    def reference_date(self) -> date:
        """Date used to resolve day-of-month values to weekdays."""
        return self.week_of or date.today()
