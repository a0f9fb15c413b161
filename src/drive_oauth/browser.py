# src/drive_oauth/browser.py

import logging
import webbrowser

from .error_handler import BrowserLaunchError

lib_logger = logging.getLogger("drive_oauth")


class BrowserLauncher:
    """Opens a URL with the operating system's default browser."""

    def open(self, url: str) -> None:
        """
        Fire-and-forget open of `url`; nothing is known about the window afterwards.

        Raises:
            BrowserLaunchError: If no browser could be launched
        """
        try:
            opened = webbrowser.open(url)
        except webbrowser.Error as e:
            raise BrowserLaunchError(url) from e

        if not opened:
            raise BrowserLaunchError(url)
        lib_logger.info("Browser opened successfully for OAuth flow")
