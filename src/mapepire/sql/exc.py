import json
import logging

logger = logging.getLogger(__name__)

### PEP-249 Mandated ###
# https://peps.python.org/pep-0249/#exceptions
class Error(Exception):
    """Base class for DB-API2.0 exceptions.
    `message`: An optional user-friendly error message. It should be short, actionable and stable
    `context`: Optional extra context about the error. MUST be JSON serializable
    """

    def __init__(self, message=None, context=None, *args, **kwargs):
        super().__init__(message, *args, **kwargs)
        self.message = message
        self.context = context or {}

    def __str__(self):
        return self.message

    def message_with_context(self):
        return self.message + ": " + json.dumps(self.context, default=str)


class Warning(Exception):
    pass


class InterfaceError(Error):
    pass


class DatabaseError(Error):
    pass


class InternalError(DatabaseError):
    pass


class OperationalError(DatabaseError):
    pass


class ProgrammingError(DatabaseError):
    pass


class DataError(DatabaseError):
    pass


class NotSupportedError(DatabaseError):
    pass


### Custom error classes ###
class InvalidConfigurationError(InterfaceError):
    """Thrown if a DaemonServer cannot be built from the supplied fields, mapping or INI file"""

    pass


class NotConnectedError(InterfaceError):
    """Thrown if an operation needs a live channel and the job has none"""

    pass


class InvalidServerResponseError(OperationalError):
    """Thrown if the server replies with a frame that is not valid JSON"""

    pass


class HandshakeFailedError(OperationalError):
    """Thrown if the server rejects the connect request or the channel fails during
    the handshake. The job is closed and left in the NOT_STARTED state.
    """

    pass


class RequestError(OperationalError):
    """Thrown if there was an error moving a frame to or from the server.
    Its context will have the following keys:
    "method": The channel operation that failed
    "original-exception": The Python level original exception
    """

    pass


class TransportError(RequestError):
    """Thrown by a MessageChannel if the underlying connection fails"""


class SendFailedError(RequestError):
    """Thrown if a frame could not be written. The job goes back to READY so the caller may retry."""


class ServerOperationError(DatabaseError):
    """Thrown if the operation moved to an error state, if for example there was a syntax
    error.
    """

    pass


class QueryFailedError(ServerOperationError):
    """Thrown if the server reports `success: false` for a SQL statement.
    Its context holds whichever of the following keys the server supplied, verbatim:
    "error": The server error message
    "sql_state": The SQLSTATE of the failure
    "sql_rc": The SQL return code
    The complete decoded reply is available as `reply`.
    """

    def __init__(self, message=None, context=None, reply=None, *args, **kwargs):
        super().__init__(message, context, *args, **kwargs)
        self.reply = reply or {}

    @property
    def error(self):
        return self.context.get("error")

    @property
    def sql_state(self):
        return self.context.get("sql_state")

    @property
    def sql_rc(self):
        return self.context.get("sql_rc")


class StatementStateError(ProgrammingError):
    """Thrown if a Query operation is not legal in the current QueryState.
    No request is sent to the server.
    """

    pass


class StatementAlreadyRunError(StatementStateError):
    pass


class StatementAlreadyCompletedError(StatementStateError):
    pass


class StatementNotYetRunError(StatementStateError):
    pass
