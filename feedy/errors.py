class FeedyError(Exception):
    """Base class for errors raised by the feedy backend."""


class PersistenceError(FeedyError):
    """The backend could not be reached or refused the operation.

    The message is shown to the user as-is; retrying is left to the user.
    """


class NotFoundError(FeedyError):
    """A record addressed by id does not exist in its collection."""


class ExportError(FeedyError):
    pass


class InsightsError(FeedyError):
    pass
