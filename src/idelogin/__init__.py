"""
IDE Login v1.0

Google account login for desktop development tools: browser-driven OAuth
login, token refresh, multiple signed-in accounts with an active one, and
persistent credential storage.
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Import key components for easier access
from idelogin.config import get_settings, load_settings, Settings
from idelogin.auth import LoginSessionManager, SQLiteOAuthDataStore, LoginError

# Version information tuple (major, minor, patch)
VERSION = tuple(map(int, __version__.split(".")))


def run():
    """Run the IDE Login command-line interface."""
    from idelogin.cli import main
    main()
