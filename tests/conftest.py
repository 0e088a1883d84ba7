"""
Shared fixtures.

DOM tests run frame-side functions in a real headless Chromium and are
skipped when Playwright's browser is not installed.
"""

import asyncio

import pytest
from playwright.async_api import async_playwright


@pytest.fixture(scope='session')
def chromium():
    """Skip the test unless headless Chromium can be launched."""
    async def probe():
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            await browser.close()

    try:
        asyncio.run(probe())
    except Exception as e:
        pytest.skip(f"Chromium not available: {e}")


def run_in_page(html, func, url=None, evaluate=None):
    """
    Load ``html`` into a fresh page and run ``func`` on its main frame.

    Args:
        html: Page content
        func: Frame-side async function
        url: Serve the content at this URL instead of about:blank
        evaluate: JavaScript expression evaluated after ``func``

    Returns:
        The function's value, or (value, evaluated) when ``evaluate`` is given
    """
    async def main():
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                page = await browser.new_page()
                if url is None:
                    await page.set_content(html)
                else:
                    async def fulfill(route):
                        await route.fulfill(body=html, content_type='text/html')

                    await page.route('**/*', fulfill)
                    await page.goto(url)

                value = await func(page.main_frame)
                if evaluate is None:
                    return value
                return value, await page.evaluate(evaluate)
            finally:
                await browser.close()

    return asyncio.run(main())


@pytest.fixture
def page_runner(chromium):
    """The ``run_in_page`` helper, available once Chromium is known to work."""
    return run_in_page
