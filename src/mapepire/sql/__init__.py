from typing import Any, Mapping, Optional, Union, TYPE_CHECKING

from mapepire.sql.exc import *
from mapepire.sql.backend.types import JobStatus, QueryState
from mapepire.sql.daemon_server import DaemonServer

if TYPE_CHECKING:
    from mapepire.sql.sql_job import SQLJob

__version__ = "0.1.0"
USER_AGENT_NAME = "PyMapepireSqlConnector"
# Application name the daemon records for a job
APPLICATION_NAME = "Python client"


def connect(
    server: Union["DaemonServer", Mapping[str, Any]],
    options: Optional[Mapping[str, Any]] = None,
    **kwargs
) -> "SQLJob":
    """
    Open a job against a Mapepire daemon.

    Args:
        server: a DaemonServer, or a mapping accepted by DaemonServer.from_dict
        options: server job options sent with the connect request
        **kwargs: passed through to SQLJob

    Example:
        with sql.connect(DaemonServer.from_ini("creds.ini")) as job:
            print(job.query_and_run("SELECT * FROM SAMPLE.EMPLOYEE"))
    """
    from mapepire.sql.sql_job import SQLJob

    if not isinstance(server, DaemonServer):
        server = DaemonServer.from_dict(server)

    job = SQLJob(options, **kwargs)
    job.connect(server)
    return job
