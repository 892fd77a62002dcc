import json
import logging
import threading
import weakref
from typing import Any, Dict, Mapping, Optional, Union

from mapepire.sql import __version__, APPLICATION_NAME, USER_AGENT_NAME
from mapepire.sql.auth.authenticators import BasicAuthProvider
from mapepire.sql.backend.channel import MessageChannel
from mapepire.sql.backend.models import ConnectRequest, parse_reply, is_success
from mapepire.sql.backend.models.responses import UNKNOWN_CONNECT_FAILURE
from mapepire.sql.backend.types import JobStatus
from mapepire.sql.backend.websocket_channel import WebSocketChannel
from mapepire.sql.daemon_server import DaemonServer
from mapepire.sql.exc import (
    Error,
    HandshakeFailedError,
    InterfaceError,
    NotConnectedError,
    SendFailedError,
)
from mapepire.sql.query import Query, QueryOptions
from mapepire.sql.utils import (
    UniqueIdGenerator,
    build_connection_props,
    default_id_generator,
)

logger = logging.getLogger(__name__)


class SQLJob:
    def __init__(
        self,
        options: Optional[Mapping[str, Any]] = None,
        id_generator: Optional[UniqueIdGenerator] = None,
        **kwargs,
    ) -> None:
        """
        A job is one authenticated connection to a Mapepire daemon.

        Parameters:
            :param options: An optional mapping of server job options, e.g. {"naming": "system",
                "libraries": ["QGPL", "MYLIB"]}. Sent with the connect request.
            :param id_generator: Source of request ids. Defaults to the generator shared by
                every job in the process.

        Other Parameters:
            application_name: `str`, optional (default is "Python client")
                Application name the daemon records for this job.
            user_agent_entry: `str`, optional
                A custom tag appended to the User-Agent header of the WebSocket upgrade request.
        """

        # Internal arguments in **kwargs:
        # _socket_timeout
        #  The timeout in seconds for socket connect, send and receive operations. Defaults to
        #  None for no timeout. Should be a positive float or integer.

        self.options: Dict[str, Any] = dict(options or {})
        self._id_generator = id_generator or default_id_generator
        self._channel: Optional[MessageChannel] = None
        self._status = JobStatus.NOT_STARTED
        self._id: Optional[str] = None
        self._is_tracing_channel_data = True
        self._request_lock = threading.Lock()
        self._queries = weakref.WeakSet()  # type: weakref.WeakSet[Query]

        self.application_name = kwargs.get("application_name", APPLICATION_NAME)
        self._socket_timeout = kwargs.get("_socket_timeout")

        user_agent_entry = kwargs.get("user_agent_entry")
        if user_agent_entry:
            self.useragent_header = "{}/{} ({})".format(
                USER_AGENT_NAME, __version__, user_agent_entry
            )
        else:
            self.useragent_header = "{}/{}".format(USER_AGENT_NAME, __version__)

    # The ideal return type for this method is perhaps Self, but that was not added until 3.11, and we support pre-3.11 pythons, currently.
    def __enter__(self) -> "SQLJob":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def __del__(self):
        if getattr(self, "_channel", None) is not None:
            logger.debug("Closing unclosed job %s", self._id)
            try:
                self._close(close_queries=False)
            except Exception as e:
                # Close on best-effort basis.
                logger.debug("Couldn't close unclosed job: %s", e)

    @property
    def status(self) -> JobStatus:
        return self._status

    @property
    def id(self) -> Optional[str]:
        """Job id assigned by the daemon during the handshake"""
        return self._id

    @property
    def channel(self) -> Optional[MessageChannel]:
        return self._channel

    @property
    def is_connected(self) -> bool:
        return self._channel is not None

    @property
    def has_request_in_flight(self) -> bool:
        return self._request_lock.locked()

    def get_new_unique_id(self, prefix: str = "id") -> str:
        return self._id_generator.next_id(prefix)

    def _get_channel(self, server: DaemonServer) -> MessageChannel:
        return WebSocketChannel(
            server.url,
            BasicAuthProvider(server.user, server.password),
            ssl_options=server.ssl_options,
            http_headers=[("User-Agent", self.useragent_header)],
            socket_timeout=self._socket_timeout,
        )

    def connect(self, server: DaemonServer) -> Dict[str, Any]:
        """
        Open the channel and perform the Mapepire "connect" handshake.

        Returns the decoded handshake reply.

        Raises:
            InterfaceError: If the job is already connecting or connected
            HandshakeFailedError: If the daemon rejects the job or the channel fails. The job
                is left in the NOT_STARTED state with no channel.
        """
        if self._status not in (JobStatus.NOT_STARTED, JobStatus.ENDED):
            raise InterfaceError(
                "Cannot connect a job in state {}".format(self._status.value)
            )

        logger.debug(
            "SQLJob.connect(host=%s, port=%s, user=%s)",
            server.host,
            server.port,
            server.user,
        )
        self._status = JobStatus.CONNECTING
        self._is_tracing_channel_data = True

        connect_request = ConnectRequest(
            id=self.get_new_unique_id(),
            application=self.application_name,
            props=build_connection_props(self.options),
        )

        try:
            self._channel = self._get_channel(server)
            self._channel.open()
            result = parse_reply(self.exchange(json.dumps(connect_request.to_dict())))
        except Exception as e:
            self._abort_handshake()
            raise HandshakeFailedError(
                "Failed during connect handshake",
                context={"host": server.host, "original-exception": str(e)},
            ) from e

        if not is_success(result):
            self._abort_handshake()
            message = (
                str(result["error"])
                if result.get("error") is not None
                else UNKNOWN_CONNECT_FAILURE
            )
            raise HandshakeFailedError(message, context={"host": server.host})

        self._status = JobStatus.READY
        self._id = result.get("job")
        self._is_tracing_channel_data = False
        logger.info("Successfully opened job %s on %s", self._id, server.host)
        return result

    def _abort_handshake(self) -> None:
        self._close_channel()
        self._status = JobStatus.NOT_STARTED

    def send(self, message: str) -> None:
        """
        Write one frame to the daemon.

        Raises:
            NotConnectedError: If the job has no channel
            SendFailedError: If the channel fails to write the frame
        """
        if self._channel is None:
            raise NotConnectedError("Cannot send: not connected.")

        ready_status = (
            JobStatus.CONNECTING
            if self._status == JobStatus.CONNECTING
            else JobStatus.READY
        )
        if self._is_tracing_channel_data:
            logger.debug("Sending frame: %s", message)

        self._status = JobStatus.BUSY
        try:
            self._channel.send(message)
        except Exception as e:
            self._status = ready_status
            raise SendFailedError(
                "send failed",
                context={"method": "send", "original-exception": str(e)},
            ) from e
        self._status = ready_status

    def receive(self) -> str:
        """Block until one frame arrives from the daemon and return it."""
        if self._channel is None:
            raise NotConnectedError("Cannot receive: not connected.")

        message = self._channel.receive()
        if self._is_tracing_channel_data:
            logger.debug("Received frame: %s", message)
        return message

    def exchange(self, message: str) -> str:
        """Send one frame and wait for its reply without letting another request interleave."""
        with self._request_lock:
            self.send(message)
            return self.receive()

    def query(
        self,
        sql: str,
        options: Union[QueryOptions, Mapping[str, Any], None] = None,
    ) -> Query:
        """Return a new Query bound to this job. Nothing is sent until it is executed."""
        if isinstance(options, Mapping):
            options = QueryOptions.from_dict(options)
        query = Query(self, sql, options)
        self._queries.add(query)
        return query

    def query_and_run(
        self,
        sql: str,
        options: Union[QueryOptions, Mapping[str, Any], None] = None,
        rows: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Run a statement, release its server cursor and return the first reply."""
        with self.query(sql, options) as query:
            return query.execute(rows)

    def close(self) -> None:
        """
        Close the job and every query that still holds a server cursor.

        Releasing a cursor is one round trip per query, so without `_socket_timeout` a hung
        daemon can block this call. Cursors are not released when the channel has
        already dropped; the daemon frees them with the job.
        """
        self._close()

    def _close(self, close_queries=True) -> None:
        if self._channel is None:
            logger.debug("Job appears to have been closed already")
            return

        logger.info("Closing job %s", self._id)
        if close_queries and not self._channel.is_open:
            logger.debug("Channel of job %s is gone, not releasing cursors", self._id)
        elif close_queries:
            for query in list(self._queries):
                try:
                    query.close()
                except Error as e:
                    logger.debug("Couldn't close query %s: %s", query.correlation_id, e)

        self._close_channel()
        self._status = JobStatus.ENDED

    def _close_channel(self) -> None:
        channel, self._channel = self._channel, None
        if channel is not None:
            channel.close()
