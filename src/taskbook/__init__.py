"""taskbook: categorized task management from the terminal."""

from taskbook.config import VERSION

__version__ = VERSION
