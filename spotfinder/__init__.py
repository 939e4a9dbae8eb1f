"""SpotFinder - find a fair place to meet."""

__version__ = "1.0.0"
