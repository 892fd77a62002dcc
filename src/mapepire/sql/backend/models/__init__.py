"""
Models for the Mapepire daemon protocol.

This package contains the request objects sent to the daemon and the helpers
that read its replies.
"""

from mapepire.sql.backend.models.requests import (
    ConnectRequest,
    ExecuteSqlRequest,
    PrepareSqlExecuteRequest,
    ClCommandRequest,
    FetchMoreRequest,
    CloseQueryRequest,
)

from mapepire.sql.backend.models.responses import (
    parse_reply,
    is_success,
    is_done,
    error_details,
    error_message,
)
