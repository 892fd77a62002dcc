import gc
import logging
from unittest.mock import patch, Mock

import pytest

import mapepire.sql
from mapepire.sql.auth.authenticators import BasicAuthProvider
from mapepire.sql.backend.types import JobStatus, QueryState
from mapepire.sql.daemon_server import DaemonServer
from mapepire.sql.exc import (
    HandshakeFailedError,
    InterfaceError,
    NotConnectedError,
    SendFailedError,
    TransportError,
)
from mapepire.sql.sql_job import SQLJob
from mapepire.sql.types import SSLOptions

from tests.unit.scripted_channel import ScriptedChannel


PACKAGE_NAME = "mapepire.sql"
CONNECT_OK = {"id": "id1", "success": True, "job": "J1"}


@pytest.fixture
def server():
    return DaemonServer(host="h", user="u", password="p")


@pytest.fixture
def channel():
    return ScriptedChannel([CONNECT_OK])


@pytest.fixture
def mock_channel_class(channel):
    with patch("%s.sql_job.WebSocketChannel" % PACKAGE_NAME) as channel_class:
        channel_class.return_value = channel
        yield channel_class


@pytest.fixture
def job(mock_channel_class, server):
    job = SQLJob()
    job.connect(server)
    return job


class TestSQLJobConnect:
    """
    Unit tests for the connect handshake
    """

    def test_successful_handshake(self, mock_channel_class, channel, server):
        job = SQLJob()
        assert job.status == JobStatus.NOT_STARTED

        result = job.connect(server)

        assert result == CONNECT_OK
        assert job.status == JobStatus.READY
        assert job.id == "J1"
        assert job.is_connected
        assert channel.opened

        request = channel.sent_requests[0]
        assert request["type"] == "connect"
        assert request["technique"] == "tcp"
        assert request["application"] == "Python client"
        assert request["props"] == ""
        assert request["id"].startswith("id")

    def test_missing_job_field_leaves_id_unset(self, mock_channel_class, channel, server):
        channel.replies = [{"success": True}]
        job = SQLJob()
        job.connect(server)
        assert job.status == JobStatus.READY
        assert job.id is None

    def test_options_are_sent_as_props(self, mock_channel_class, channel, server):
        job = SQLJob({"libraries": ["QGPL", "MYLIB"], "naming": "system"})
        job.connect(server)
        assert channel.sent_requests[0]["props"] == "libraries=QGPL,MYLIB;naming=system"

    def test_application_name_passthrough(self, mock_channel_class, channel, server):
        SQLJob(application_name="my app").connect(server)
        assert channel.sent_requests[0]["application"] == "my app"

    def test_channel_gets_url_auth_and_tls_policy(self, mock_channel_class, server):
        SQLJob(_socket_timeout=12).connect(server)

        url, auth_provider = mock_channel_class.call_args[0]
        kwargs = mock_channel_class.call_args[1]
        assert url == "wss://h:8076/db/"
        assert isinstance(auth_provider, BasicAuthProvider)
        headers = {}
        auth_provider.add_headers(headers)
        assert headers["Authorization"] == "Basic dTpw"
        assert kwargs["ssl_options"] == SSLOptions(tls_verify=True)
        assert kwargs["socket_timeout"] == 12

    def test_ignore_unauthorized_disables_verification(self, mock_channel_class):
        server = DaemonServer(host="h", user="u", password="p", ignore_unauthorized=True)
        SQLJob().connect(server)
        ssl_options = mock_channel_class.call_args[1]["ssl_options"]
        assert ssl_options.tls_verify is False
        assert ssl_options.tls_verify_hostname is False

    def test_useragent_header(self, mock_channel_class, channel, server):
        SQLJob().connect(server)
        headers = mock_channel_class.call_args[1]["http_headers"]
        assert (
            "User-Agent",
            "{}/{}".format(mapepire.sql.USER_AGENT_NAME, mapepire.sql.__version__),
        ) in headers

        channel.script(CONNECT_OK)
        SQLJob(user_agent_entry="foobar").connect(server)
        headers = mock_channel_class.call_args[1]["http_headers"]
        assert (
            "User-Agent",
            "{}/{} ({})".format(
                mapepire.sql.USER_AGENT_NAME, mapepire.sql.__version__, "foobar"
            ),
        ) in headers

    def test_rejected_handshake(self, mock_channel_class, channel, server):
        channel.replies = [{"success": False, "error": "bad credentials"}]
        job = SQLJob()

        with pytest.raises(HandshakeFailedError) as excinfo:
            job.connect(server)

        assert str(excinfo.value) == "bad credentials"
        assert job.status == JobStatus.NOT_STARTED
        assert not job.is_connected
        assert channel.closed

    def test_rejected_handshake_without_error_uses_fallback(
        self, mock_channel_class, channel, server
    ):
        channel.replies = [{"success": False}]
        with pytest.raises(HandshakeFailedError) as excinfo:
            SQLJob().connect(server)
        assert str(excinfo.value) == "Failed to connect to server."

    @pytest.mark.parametrize("reply", ["not json", "[]", "null", '"ok"'])
    def test_non_object_reply_fails_handshake(
        self, mock_channel_class, channel, server, reply
    ):
        channel.replies = [reply]
        job = SQLJob()
        with pytest.raises(HandshakeFailedError):
            job.connect(server)
        assert job.status == JobStatus.NOT_STARTED
        assert channel.closed

    def test_transport_failure_during_handshake(self, mock_channel_class, channel, server):
        channel.replies = [TransportError("connection reset")]
        job = SQLJob()

        with pytest.raises(HandshakeFailedError) as excinfo:
            job.connect(server)

        assert isinstance(excinfo.value.__cause__, TransportError)
        assert job.status == JobStatus.NOT_STARTED
        assert not job.is_connected
        assert channel.closed

    def test_open_failure_during_handshake(self, mock_channel_class, channel, server):
        channel.open = Mock(side_effect=TransportError("refused"))
        job = SQLJob()
        with pytest.raises(HandshakeFailedError):
            job.connect(server)
        assert job.status == JobStatus.NOT_STARTED
        assert channel.sent == []

    def test_connect_twice_is_rejected(self, job, server):
        with pytest.raises(InterfaceError):
            job.connect(server)
        assert job.status == JobStatus.READY

    def test_reconnect_after_close(self, job, channel, server):
        job.close()
        channel.replies = [{"success": True, "job": "J2"}]
        channel.closed = False

        job.connect(server)

        assert job.status == JobStatus.READY
        assert job.id == "J2"

    def test_tracing_is_turned_off_after_handshake(self, job, channel, caplog):
        channel.script({"success": True, "is_done": True, "id": "C1"})
        with caplog.at_level(logging.DEBUG, logger="mapepire.sql.sql_job"):
            job.query("SELECT 1").execute()
        assert "Sending frame" not in caplog.text

    def test_password_is_not_logged(self, mock_channel_class, server, caplog):
        with caplog.at_level(logging.DEBUG, logger="mapepire.sql"):
            SQLJob().connect(DaemonServer(host="h", user="u", password="s3cr3t"))
        assert "s3cr3t" not in caplog.text


class TestSQLJobSendReceive:
    def test_send_without_channel(self):
        with pytest.raises(NotConnectedError):
            SQLJob().send("{}")

    def test_receive_without_channel(self):
        with pytest.raises(NotConnectedError):
            SQLJob().receive()

    def test_send_returns_to_ready(self, job, channel):
        job.send('{"id": "x"}')
        assert job.status == JobStatus.READY
        assert channel.sent[-1] == '{"id": "x"}'

    def test_send_failure_is_wrapped_and_job_stays_ready(self, job, channel):
        cause = TransportError("broken pipe")
        channel.fail_on_send = cause

        with pytest.raises(SendFailedError) as excinfo:
            job.send("{}")

        assert excinfo.value.__cause__ is cause
        assert job.status == JobStatus.READY

    def test_receive_returns_raw_text(self, job, channel):
        channel.script('{"anything": 1}')
        assert job.receive() == '{"anything": 1}'

    def test_exchange_sends_then_receives(self, job, channel):
        channel.script('{"id": "r"}')
        assert job.exchange('{"id": "q"}') == '{"id": "r"}'
        assert channel.sent[-1] == '{"id": "q"}'
        assert not job.has_request_in_flight

    def test_operations_after_close_fail(self, job):
        job.close()
        with pytest.raises(NotConnectedError):
            job.send("{}")
        with pytest.raises(NotConnectedError):
            job.receive()


class TestSQLJobClose:
    def test_close_is_idempotent(self, job, channel):
        job.close()
        job.close()
        assert job.status == JobStatus.ENDED
        assert channel.closed
        assert not job.is_connected

    def test_close_before_connect_is_noop(self):
        job = SQLJob()
        job.close()
        assert job.status == JobStatus.NOT_STARTED

    def test_close_releases_open_cursors(self, job, channel):
        channel.script(
            {"success": True, "is_done": False, "id": "C1"},
            {"success": True, "is_done": True, "id": "C2"},
            {"success": True, "id": "close-reply"},
        )
        open_query = job.query("SELECT * FROM BIG")
        open_query.execute()
        done_query = job.query("SELECT 1")
        done_query.execute()
        never_run = job.query("SELECT 2")

        job.close()

        close_requests = [r for r in channel.sent_requests if r["type"] == "sqlclose"]
        assert close_requests == [
            {"id": close_requests[0]["id"], "cont_id": "C1", "type": "sqlclose"}
        ]
        assert open_query.state == QueryState.RUN_DONE
        assert never_run.state == QueryState.RUN_DONE
        assert job.status == JobStatus.ENDED

    def test_close_still_ends_job_when_cursor_release_fails(self, job, channel):
        channel.script({"success": True, "is_done": False, "id": "C1"})
        query = job.query("SELECT * FROM BIG")
        query.execute()
        channel.script(TransportError("reset"))

        job.close()

        assert job.status == JobStatus.ENDED
        assert channel.closed

    def test_close_skips_cursor_release_on_dropped_channel(self, job, channel):
        channel.script({"success": True, "is_done": False, "id": "C1"})
        query = job.query("SELECT * FROM BIG")
        query.execute()
        sent = len(channel.sent)
        channel.drop()

        job.close()

        assert len(channel.sent) == sent
        assert job.status == JobStatus.ENDED
        assert channel.closed
        assert not job.is_connected

    def test_context_manager_closes_job(self, mock_channel_class, channel, server):
        with SQLJob() as job:
            job.connect(server)
        assert job.status == JobStatus.ENDED
        assert channel.closed

        job = SQLJob()
        job.close = Mock()
        try:
            with pytest.raises(KeyboardInterrupt):
                with job:
                    raise KeyboardInterrupt("Simulated interrupt")
        finally:
            job.close.assert_called()

    def test_finalizer_closes_abandoned_job(self, mock_channel_class, channel, server):
        SQLJob().connect(server)

        # not strictly necessary as the refcount is 0, but just to be sure
        gc.collect()

        assert channel.closed


class TestSQLJobQueries:
    def test_query_does_not_need_a_connection(self):
        query = SQLJob().query("SELECT 1")
        assert query.state == QueryState.NOT_YET_RUN

    def test_query_accepts_option_mapping(self, job):
        query = job.query("CALL X", {"isClCommand": True, "isTerseResults": True})
        assert query.is_cl_command
        assert query.is_terse_results

    def test_query_and_run_returns_first_reply_and_releases_cursor(self, job, channel):
        first = {"success": True, "is_done": False, "id": "C1", "data": [{"A": 1}]}
        channel.script(first, {"success": True, "id": "close-reply"})

        assert job.query_and_run("SELECT * FROM BIG", rows=1) == first

        run_request, close_request = channel.sent_requests[1:]
        assert run_request["rows"] == 1
        assert close_request["type"] == "sqlclose"
        assert close_request["cont_id"] == "C1"

    def test_query_and_run_done_needs_no_close(self, job, channel):
        channel.script({"success": True, "is_done": True, "id": "C1"})
        job.query_and_run("SELECT 1")
        assert [r["type"] for r in channel.sent_requests] == ["connect", "sql"]


class TestConnectFunction:
    def test_connect_from_mapping(self, mock_channel_class, channel):
        job = mapepire.sql.connect({"host": "h", "user": "u", "password": "p"})
        assert job.status == JobStatus.READY
        assert job.id == "J1"
        assert mock_channel_class.call_args[0][0] == "wss://h:8076/db/"

    def test_connect_passes_options_and_kwargs(self, mock_channel_class, channel, server):
        mapepire.sql.connect(server, {"naming": "sql"}, _socket_timeout=3)
        assert channel.sent_requests[0]["props"] == "naming=sql"
        assert mock_channel_class.call_args[1]["socket_timeout"] == 3

    def test_connect_propagates_handshake_failure(self, mock_channel_class, channel, server):
        channel.replies = [{"success": False, "error": "nope"}]
        with pytest.raises(HandshakeFailedError):
            mapepire.sql.connect(server)
