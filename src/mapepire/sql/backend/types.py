from enum import Enum


class JobStatus(Enum):
    """
    Lifecycle of a SQLJob.

    NOT_STARTED -> CONNECTING -> READY <-> BUSY, and READY -> ENDED on close.
    A failed handshake moves CONNECTING back to NOT_STARTED. Only NOT_STARTED
    and ENDED jobs may connect.
    """

    NOT_STARTED = "notStarted"
    CONNECTING = "connecting"
    READY = "ready"
    BUSY = "busy"
    ENDED = "ended"


class QueryState(Enum):
    """
    Execution state of a Query.

    Attributes:
        NOT_YET_RUN: Query has been created but nothing was sent to the server
        RUN_MORE_DATA_AVAILABLE: Query ran and the server holds more rows behind the correlation id
        RUN_DONE: Query ran to completion or was closed
        ERROR: Server reported a failure for the query
    """

    NOT_YET_RUN = 1
    RUN_MORE_DATA_AVAILABLE = 2
    RUN_DONE = 3
    ERROR = 4

    @classmethod
    def from_is_done(cls, is_done: bool) -> "QueryState":
        return cls.RUN_DONE if is_done else cls.RUN_MORE_DATA_AVAILABLE
