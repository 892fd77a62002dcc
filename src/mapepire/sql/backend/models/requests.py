"""
Request models for the Mapepire daemon protocol.

Every request is a JSON object carrying a client-generated `id`; the daemon
answers each one with exactly one reply.
"""

from typing import Dict, List, Any, Optional
from dataclasses import dataclass, field


@dataclass
class ConnectRequest:
    """Representation of the handshake that opens a job."""

    id: str
    application: str
    props: str = ""
    technique: str = "tcp"

    def to_dict(self) -> Dict[str, Any]:
        """Convert the request to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": "connect",
            "technique": self.technique,
            "application": self.application,
            "props": self.props,
        }


@dataclass
class ExecuteSqlRequest:
    """Representation of a request to run a SQL statement.

    The type is `prepare_sql_execute` when bind parameters are supplied.
    """

    id: str
    sql: str
    rows: int
    terse: bool = False
    parameters: List[Any] = field(default_factory=list)
    is_prepared: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert the request to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": "prepare_sql_execute" if self.is_prepared else "sql",
            "sql": self.sql,
            "terse": self.terse,
            "rows": self.rows,
            "parameters": self.parameters,
        }


@dataclass
class PrepareSqlExecuteRequest:
    """Representation of a request to prepare a statement and run it with parameters."""

    id: str
    sql: str
    rows: int = 0
    parameters: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the request to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "type": "prepare_sql_execute",
            "sql": self.sql,
            "rows": self.rows,
            "parameters": self.parameters,
        }


@dataclass
class ClCommandRequest:
    """Representation of a request to run a CL command."""

    id: str
    cmd: str
    terse: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert the request to a dictionary for JSON serialization."""
        return {"id": self.id, "type": "cl", "terse": self.terse, "cmd": self.cmd}


@dataclass
class FetchMoreRequest:
    """Representation of a request to fetch the next batch of rows."""

    id: str
    cont_id: Optional[str]
    sql: str
    rows: int

    def to_dict(self) -> Dict[str, Any]:
        """Convert the request to a dictionary for JSON serialization."""
        return {
            "id": self.id,
            "cont_id": self.cont_id,
            "type": "sqlmore",
            "sql": self.sql,
            "rows": self.rows,
        }


@dataclass
class CloseQueryRequest:
    """Representation of a request to release a statement handle."""

    id: str
    cont_id: str

    def to_dict(self) -> Dict[str, str]:
        """Convert the request to a dictionary for JSON serialization."""
        return {"id": self.id, "cont_id": self.cont_id, "type": "sqlclose"}
