"""Live page capture through Playwright."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING, Any, Optional

from ..dom.document import Document
from ..dom.layout import HIDDEN_ATTR, RECT_ATTR, VIEWPORT_ATTR

if TYPE_CHECKING:
    from ..session import ConversationSession

logger = logging.getLogger(__name__)

# Check for Playwright availability
PLAYWRIGHT_AVAILABLE = False
try:
    from playwright.async_api import Frame, Page, async_playwright

    PLAYWRIGHT_AVAILABLE = True
except ImportError:
    pass

if TYPE_CHECKING:
    from playwright.async_api import Frame, Page

# Clones the document and stamps geometry onto the clone only; the live
# tree is never touched.
STAMP_SCRIPT = f"""
() => {{
    const root = document.documentElement;
    const clone = root.cloneNode(true);
    const live = [root, ...root.querySelectorAll('*')];
    const copies = [clone, ...clone.querySelectorAll('*')];
    const count = Math.min(live.length, copies.length);
    for (let i = 0; i < count; i++) {{
        const el = live[i];
        const copy = copies[i];
        const r = el.getBoundingClientRect();
        copy.setAttribute('{RECT_ATTR}', [r.top, r.left, r.width, r.height].join(' '));
        const style = window.getComputedStyle(el);
        if (style.display === 'none' || style.visibility === 'hidden' || style.opacity === '0') {{
            copy.setAttribute('{HIDDEN_ATTR}', '');
        }}
    }}
    clone.setAttribute('{VIEWPORT_ATTR}', String(window.innerHeight));
    return '<!DOCTYPE html>' + clone.outerHTML;
}}
"""

MUTATION_BINDING = "__turnscoutMutation"

OBSERVER_SCRIPT = f"""
(() => {{
    const start = () => {{
        const observer = new MutationObserver(() => window.{MUTATION_BINDING}());
        observer.observe(document.documentElement, {{
            childList: true,
            subtree: true,
            characterData: true,
        }});
    }};
    if (document.documentElement) {{
        start();
    }} else {{
        document.addEventListener('DOMContentLoaded', start);
    }}
}})();
"""


def _require_playwright() -> None:
    if not PLAYWRIGHT_AVAILABLE:
        raise ImportError("Playwright is required for live capture. " "Install with: pip install turnscout[js]")


class PageSnapshotter:
    """
    Produce geometry-stamped snapshots of a live page.

    Example:
        snapshotter = PageSnapshotter(page)
        document = await snapshotter.snapshot()

    Requires: pip install turnscout[js]
    """

    def __init__(self, page: Page):
        _require_playwright()
        self._page = page

    async def snapshot(self) -> Document:
        """
        Capture the page as it is rendered now.

        Raises:
            RuntimeError: If the page cannot be evaluated
        """
        try:
            html = await self._page.evaluate(STAMP_SCRIPT)
        except Exception as e:
            raise RuntimeError(f"Could not capture {self._page.url}: {e}") from e
        return Document(html, self._page.url)


async def watch_page(page: Page, session: ConversationSession) -> None:
    """
    Forward page mutations and navigations to a session.

    The observer is installed on the current document and on every
    document the page loads afterwards.
    """
    _require_playwright()

    def on_mutation(*_: Any) -> None:
        session.document_changed()

    def on_navigated(frame: Frame) -> None:
        if frame.parent_frame is not None:
            return
        task = asyncio.get_running_loop().create_task(session.address_changed(frame.url))
        task.add_done_callback(_log_task_failure)

    await page.expose_function(MUTATION_BINDING, on_mutation)
    await page.add_init_script(OBSERVER_SCRIPT)
    try:
        await page.evaluate(OBSERVER_SCRIPT)
    except Exception as e:
        # The init script still covers the next document
        logger.debug(f"Could not observe current document: {e}")
    page.on("framenavigated", on_navigated)
    logger.debug(f"Watching {page.url}")


def _log_task_failure(task: asyncio.Task[Any]) -> None:
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Navigation handling failed: {error}")


@contextlib.asynccontextmanager
async def launch_page(
    url: str,
    headless: bool = False,
    timeout: float = 30.0,
    user_data_dir: Optional[str] = None,
) -> AsyncIterator[Page]:
    """
    Open a browser on a chat application.

    A persistent profile directory keeps the login between runs.

    Args:
        url: Address to open
        headless: Run browser in headless mode
        timeout: Default timeout for page operations (seconds)
        user_data_dir: Browser profile directory (temporary if None)

    Example:
        async with launch_page("https://claude.ai") as page:
            document = await PageSnapshotter(page).snapshot()
    """
    _require_playwright()
    context_options: dict[str, object] = {
        "viewport": {"width": 1920, "height": 1080},
        "java_script_enabled": True,
    }

    async with async_playwright() as playwright:
        if user_data_dir:
            context = await playwright.chromium.launch_persistent_context(
                user_data_dir, headless=headless, **context_options  # type: ignore[arg-type]
            )
            browser = None
        else:
            browser = await playwright.chromium.launch(headless=headless)
            context = await browser.new_context(**context_options)  # type: ignore[arg-type]
        context.set_default_timeout(timeout * 1000)

        try:
            page = context.pages[0] if context.pages else await context.new_page()
            await page.goto(url)
            logger.info(f"Opened {url}")
            yield page
        finally:
            with contextlib.suppress(Exception):
                await context.close()
            if browser is not None:
                await browser.close()
            logger.info("Browser closed")
