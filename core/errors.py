class WatcherError(Exception):
    """Base class for errors raised by the watcher."""


class RenderError(WatcherError):
    """The browser could not navigate to or render a search page."""


class StoreError(WatcherError):
    """A write to the storage backend failed."""
