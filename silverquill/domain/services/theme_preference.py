"""Persisted visual theme preference."""

import logging

from ..interfaces.preference_store import PreferenceStore

logger = logging.getLogger(__name__)

THEME_KEY = "silverquill_theme"
DEFAULT_THEME = "silverMist"
THEMES = ("silverMist", "midnightInk", "sepiaPage", "forestGlade")


class ThemePreference:
    """The one preference that survives restarts.

    Read once at startup, written on every change. Absent or unknown stored
    values fall back to the default theme.
    """

    def __init__(self, store: PreferenceStore):
        self.store = store
        self.current = DEFAULT_THEME

    def load(self) -> str:
        saved = self.store.get(THEME_KEY)
        self.current = saved if saved in THEMES else DEFAULT_THEME
        return self.current

    def change(self, theme: str) -> bool:
        """Switch to ``theme``; unknown themes are ignored.

        Returns:
            bool: Whether the theme was accepted.
        """
        if theme not in THEMES:
            logger.warning(f"Ignoring unknown theme {theme!r}")
            return False
        self.current = theme
        self.store.set(THEME_KEY, theme)
        return True
