"""
TrendWatch - Terminal-first trending repository feed.

Pages through a remote repository search, deduplicates incrementally
arriving items, and recovers from rate limits by waiting out the
server-supplied cooldown.
"""

__version__ = "0.1.0"
__app_name__ = "trendwatch"
