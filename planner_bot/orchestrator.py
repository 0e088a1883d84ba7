"""
Import orchestration.

Drives one source through its tab, navigation, readiness and extraction
phases (``SourceImporter``), runs all requested sources concurrently under
an outer timeout (``import_all``), and owns the browser for a whole import
(``BrowserSession``, ``run_import_operation``).
"""

import asyncio
from typing import Dict, List, Optional

from playwright.async_api import async_playwright, BrowserContext

from .config import Config
from .frames import PageExecutor, aggregate_frame_results
from .logging_utils import get_logger, get_source_logger, log_step, log_success, log_warning, log_error
from .models import ErrorKind, ImportResult, SourceResult
from .navigation import run_navigation
from .readiness import poll_readiness
from .sources import SourceConfig, default_sources
from .tabs import TabManager


class ImportState:
    """Phases of a single-source import."""
    IDLE = 'idle'
    TAB_OPENED = 'tab-opened'
    NAVIGATING = 'navigating'
    READINESS = 'readiness'
    EXTRACTING = 'extracting'
    SUCCESS = 'success'
    NEEDS_LOGIN = 'needs-login'
    ERROR = 'error'


def classify_extraction_error(message: str) -> str:
    """Errors raised inside an extractor are exceptions; anything else means nothing was found."""
    if 'Extraction error' in message:
        return ErrorKind.EXTRACTION_EXCEPTION
    return ErrorKind.NO_DATA_FOUND


class SourceImporter:
    """
    Imports a single source.

    State moves ``idle → tab-opened → navigating → readiness → extracting``
    and ends in ``success``, ``needs-login`` or ``error``. Navigation and
    readiness are skipped for sources that do not define them.
    """

    def __init__(self, source: SourceConfig, tabs: TabManager, executor: PageExecutor, config: Config):
        """
        Initialize the importer.

        Args:
            source: Settings of the source to import
            tabs: Tab manager of the browser context
            executor: Runs frame-side functions in the source's page
            config: Retry and timing configuration
        """
        self.source = source
        self.tabs = tabs
        self.executor = executor
        self.config = config
        self.state = ImportState.IDLE
        self.logger = get_source_logger(source.key)

    def _finish(self, result: SourceResult) -> SourceResult:
        self.state = result.status
        if result.ok:
            log_success(f"{len(result.data)} record(s) extracted", self.logger)
        else:
            log_error(f"{result.status}: {result.error}", self.logger)
        return result

    async def run(self) -> SourceResult:
        """
        Run the import.

        Returns:
            SourceResult (never raises for page-level failures)
        """
        key = self.source.key

        try:
            page = await self.tabs.ensure_tab(self.source.url_prefix, self.source.url)
        except Exception as e:
            return self._finish(SourceResult.failure(key, f"Could not open tab: {e}", ErrorKind.TAB_OPEN_FAILED))

        self.state = ImportState.TAB_OPENED
        log_step(f"Tab ready, settling for {self.source.settle_delay:.0f}s", self.logger)
        await asyncio.sleep(self.source.settle_delay)

        navigation_failed = False
        if self.source.navigation_steps:
            self.state = ImportState.NAVIGATING
            outcome = await run_navigation(
                self.executor, page, self.source.navigation_steps, self.config, self.logger,
                all_frames=self.source.all_frames,
            )
            navigation_failed = not outcome.succeeded

        if self.source.readiness is not None:
            self.state = ImportState.READINESS
            ready = await poll_readiness(
                self.executor, page, self.source.readiness, self.source.all_frames,
                timeout=self.config.readiness_timeout, interval=self.config.poll_interval,
            )
            if not ready:
                log_warning(f"Not ready after {self.config.readiness_timeout:.0f}s", self.logger)
                if self.source.fail_on_readiness_timeout:
                    if navigation_failed:
                        return self._finish(SourceResult.failure(
                            key,
                            "Data did not load within timeout (navigation steps failed)",
                            ErrorKind.NAVIGATION_FAILED,
                            diag={'readiness_timeout': True, 'navigation_failed': True},
                        ))
                    return self._finish(SourceResult.failure(
                        key,
                        "Data did not load within timeout",
                        ErrorKind.NOT_READY_TIMEOUT,
                        diag={'readiness_timeout': True},
                    ))

        self.state = ImportState.EXTRACTING
        return self._finish(await self._extract(page))

    async def _extract(self, page) -> SourceResult:
        key = self.source.key
        max_attempts = self.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            last = attempt == max_attempts
            self.logger.debug(f"Extraction attempt {attempt}/{max_attempts}")

            try:
                frame_results = await self.executor.execute(page, self.source.extract, all_frames=self.source.all_frames)
                result = aggregate_frame_results(frame_results, self.source.app_frame_patterns)
            except Exception as e:
                if last:
                    return SourceResult.failure(key, str(e), ErrorKind.EXTRACTION_EXCEPTION)
                await asyncio.sleep(self.config.retry_delay)
                continue

            if result.needs_login:
                log_warning("Login required, bringing the tab to the front", self.logger)
                try:
                    await self.tabs.focus_tab(page)
                except Exception as e:
                    self.logger.debug(f"Could not focus tab: {e}")
                if last:
                    return SourceResult.needs_login(key, diag=result.diag)
                await asyncio.sleep(self.config.retry_delay)
                continue

            if result.has_data:
                return SourceResult.success(key, result.data, diag=result.diag)

            if result.error:
                self.logger.debug(f"Attempt {attempt} failed: {result.error}")
                if last:
                    return SourceResult.failure(
                        key, result.error, classify_extraction_error(result.error), diag=result.diag
                    )
            elif last:
                break

            await asyncio.sleep(self.config.retry_delay)

        return SourceResult.failure(key, "Timed out waiting for data", ErrorKind.NO_DATA_FOUND)


async def import_source(source: SourceConfig, tabs: TabManager, executor: PageExecutor,
                        config: Config) -> SourceResult:
    """Import one source (see SourceImporter)."""
    return await SourceImporter(source, tabs, executor, config).run()


async def import_all(config: Config, tabs: TabManager, executor: Optional[PageExecutor] = None,
                     sources: Optional[Dict[str, SourceConfig]] = None,
                     requested: Optional[List[str]] = None,
                     timeout: Optional[float] = None) -> ImportResult:
    """
    Import the requested sources concurrently.

    Sources that are still running when ``timeout`` passes are cancelled
    and reported as timeout errors; the others keep their results.

    Args:
        config: Application configuration
        tabs: Tab manager of the browser context
        executor: Page executor (a new one if None)
        sources: Source settings by name (``default_sources(config)`` if None)
        requested: Source names to import (``config.sources`` if None)
        timeout: Outer timeout in seconds (``config.import_timeout`` if None)

    Returns:
        ImportResult containing every requested source
    """
    logger = get_logger()
    executor = executor or PageExecutor()
    sources = sources if sources is not None else default_sources(config)
    requested = requested if requested is not None else config.sources
    timeout = timeout if timeout is not None else config.import_timeout

    results = ImportResult()
    tasks = {}
    for name in requested:
        if name not in sources:
            results.results[name] = SourceResult.failure(
                name, f"Unknown source: {name}", ErrorKind.EXTRACTION_EXCEPTION
            )
            continue
        tasks[name] = asyncio.ensure_future(import_source(sources[name], tabs, executor, config))

    if not tasks:
        return results

    log_step(f"Importing {', '.join(tasks)} (timeout {timeout:.0f}s)", logger)
    _, pending = await asyncio.wait(tasks.values(), timeout=timeout)

    for task in pending:
        task.cancel()
    if pending:
        await asyncio.gather(*pending, return_exceptions=True)

    for name, task in tasks.items():
        if task in pending or task.cancelled():
            log_error(f"[{name}] abandoned after {timeout:.0f}s", logger)
            results.results[name] = SourceResult.failure(
                name, f"Import timed out after {timeout:.0f}s", ErrorKind.IMPORT_TIMEOUT
            )
        elif task.exception() is not None:
            log_error(f"[{name}] failed: {task.exception()}", logger)
            results.results[name] = SourceResult.failure(
                name, str(task.exception()), ErrorKind.EXTRACTION_EXCEPTION
            )
        else:
            results.results[name] = task.result()

    return results


class BrowserSession:
    """
    Persistent Chromium context for the import.

    The profile directory keeps the user's logins, so sources that needed a
    login once are usually ready on the next run.
    """

    def __init__(self, config: Config):
        self.config = config
        self.logger = get_logger()
        self.playwright = None
        self.context: Optional[BrowserContext] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        """Start Playwright and launch the persistent browser context."""
        log_step("Starting browser...", self.logger)

        self.playwright = await async_playwright().start()
        self.context = await self.playwright.chromium.launch_persistent_context(
            self.config.user_data_dir,
            headless=self.config.headless,
        )
        self.context.set_default_navigation_timeout(self.config.navigation_timeout_ms)

        self.logger.debug(
            f"Browser launched (headless={self.config.headless}, profile={self.config.user_data_dir})"
        )

    async def close(self):
        """Close the browser context and Playwright."""
        if self.context:
            await self.context.close()
        if self.playwright:
            await self.playwright.stop()

        self.logger.debug("Browser closed")


async def run_import_operation(config: Config, requested: Optional[List[str]] = None) -> ImportResult:
    """
    Launch the browser, import the requested sources and close the browser.

    Args:
        config: Application configuration
        requested: Source names to import (``config.sources`` if None)

    Returns:
        ImportResult
    """
    async with BrowserSession(config) as session:
        tabs = TabManager(session.context, config.navigation_timeout_ms)
        return await import_all(config, tabs, requested=requested)
