"""
Running frame-side functions in a page and combining their per-frame results.

Sources embed their data in iframes (the report app, the ticketing app), so
a frame-side function is usually run in every frame of the page. The
aggregator then decides which frame's answer counts.
"""

import asyncio
from typing import Callable, List, Optional

from playwright.async_api import Frame, Page

from .field_parser import is_garbage_record
from .models import ExtractionResult, FrameResult


class PageExecutor:
    """
    Runs a top-level async function of one ``Frame`` in a page's frames.

    The function receives nothing but the frame, so it cannot depend on
    state from the caller.
    """

    @staticmethod
    def _frames(page: Page, all_frames: bool) -> List[Frame]:
        if not all_frames:
            return [page.main_frame]
        return [f for f in page.frames if not f.is_detached()]

    @staticmethod
    async def _run(frame: Frame, func) -> FrameResult:
        url = frame.url
        try:
            return FrameResult(frame_url=url, value=await func(frame))
        except Exception as e:
            return FrameResult(frame_url=url, error=str(e))

    async def execute(self, page: Page, func, all_frames: bool = False) -> List[FrameResult]:
        """
        Run ``func`` in the main frame, or concurrently in every frame.

        Returns:
            One FrameResult per frame, in frame order
        """
        frames = self._frames(page, all_frames)
        return list(await asyncio.gather(*(self._run(f, func) for f in frames)))

    async def execute_until(self, page: Page, func, all_frames: bool,
                            accept: Callable[[object], bool]) -> List[FrameResult]:
        """
        Run ``func`` frame by frame, stopping at the first accepted value.

        Used for actions with side effects (clicks), which must not run in
        a second frame once one frame has performed them.

        Returns:
            FrameResults of the frames that ran, the accepted one last
        """
        results = []
        for frame in self._frames(page, all_frames):
            result = await self._run(frame, func)
            results.append(result)
            if result.error is None and accept(result.value):
                break
        return results


def _matches_any(url: str, patterns: List[str]) -> bool:
    return any(p in url for p in patterns)


def aggregate_frame_results(frame_results: List[FrameResult],
                            app_frame_patterns: Optional[List[str]] = None) -> ExtractionResult:
    """
    Combine per-frame extractor results into one result for the source.

    Rules:
      - A frame that needs login wins outright.
      - Among frames with data, frames whose URL matches an app pattern rank
        first, then frames with more records.
      - Navigation-chrome records are dropped from the chosen data, unless
        that would leave nothing.
      - With no data anywhere, per-frame errors are joined, or a
        "No data found" error names the number of frames checked.

    Args:
        frame_results: Results from PageExecutor.execute
        app_frame_patterns: URL substrings of the application's own frames

    Returns:
        ExtractionResult
    """
    patterns = app_frame_patterns or []
    errors = []
    all_diag = []
    candidates = []

    for fr in frame_results:
        if fr.error is not None:
            errors.append(fr.error)
            continue

        result = ExtractionResult.from_frame(fr.value)
        if result.diag:
            all_diag.append(result.diag)

        if result.needs_login:
            return result

        if result.has_data:
            candidates.append((fr.frame_url, result))
        elif result.error:
            errors.append(result.error)

    if candidates:
        candidates.sort(key=lambda c: (_matches_any(c[0], patterns), len(c[1].data)), reverse=True)
        chosen = candidates[0][1]

        filtered = [r for r in chosen.data if not is_garbage_record(r)]
        if filtered:
            chosen.data = filtered
        return chosen

    if errors:
        error = ' | '.join(errors)
    else:
        error = f"No data found (checked {len(frame_results)} frames)"

    return ExtractionResult(needs_login=False, data=[], error=error, diag=all_diag)
