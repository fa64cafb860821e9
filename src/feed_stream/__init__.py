"""feed_stream package.

Paginated personal feeds (YouTube watch history, Google Play Books library)
as a lazy, cancellable stream of records over an authenticated HTTP session.

Entry point: `feed-stream` (console script).
"""

__all__ = [
    "cli",
    "stream",
    "youtube",
    "play_books",
]
