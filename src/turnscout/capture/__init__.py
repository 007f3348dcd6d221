"""Live capture of chat pages (requires the js extra)."""

from .browser import PLAYWRIGHT_AVAILABLE, PageSnapshotter, launch_page, watch_page

__all__ = [
    "PLAYWRIGHT_AVAILABLE",
    "PageSnapshotter",
    "launch_page",
    "watch_page",
]
