from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, TYPE_CHECKING

from mapepire.sql.backend.models import (
    ClCommandRequest,
    CloseQueryRequest,
    ExecuteSqlRequest,
    FetchMoreRequest,
    PrepareSqlExecuteRequest,
    error_details,
    error_message,
    is_done,
    is_success,
    parse_reply,
)
from mapepire.sql.backend.models.responses import UNKNOWN_FETCH_FAILURE
from mapepire.sql.backend.types import QueryState
from mapepire.sql.exc import (
    NotConnectedError,
    QueryFailedError,
    StatementAlreadyCompletedError,
    StatementAlreadyRunError,
    StatementNotYetRunError,
)

if TYPE_CHECKING:
    from mapepire.sql.sql_job import SQLJob

logger = logging.getLogger(__name__)

DEFAULT_ROWS = 100


@dataclass
class QueryOptions:
    """Options controlling how a Query is sent to the daemon."""

    is_terse_results: bool = False
    is_cl_command: bool = False
    parameters: Optional[List[Any]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QueryOptions":
        """Accepts the camelCase keys other Mapepire clients use as well as snake_case ones."""

        def _get(camel: str, snake: str):
            return data[camel] if camel in data else data.get(snake)

        parameters = data.get("parameters")
        return cls(
            is_terse_results=bool(_get("isTerseResults", "is_terse_results")),
            is_cl_command=bool(_get("isClCommand", "is_cl_command")),
            parameters=list(parameters) if parameters is not None else None,
        )


class Query:
    def __init__(
        self, job: "SQLJob", sql: str, options: Optional[QueryOptions] = None
    ) -> None:
        """
        One SQL statement or CL command and the server cursor behind it.

        Queries are created through `SQLJob.query()`. A query runs once; when the
        daemon has more rows than the first batch, `fetch_more()` pages through them
        and `close()` releases the server cursor.
        """
        options = options or QueryOptions()

        self._job = job
        self._sql = sql
        self._parameters: List[Any] = list(options.parameters or [])
        self._is_prepared = bool(options.parameters)
        self._is_cl_command = options.is_cl_command
        self._is_terse_results = options.is_terse_results
        self._rows = DEFAULT_ROWS
        self._state = QueryState.NOT_YET_RUN
        self._correlation_id: Optional[str] = None

    def __enter__(self) -> "Query":
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self._close_quietly()

    def __del__(self):
        self._close_quietly()

    @property
    def sql(self) -> str:
        return self._sql

    @property
    def parameters(self) -> List[Any]:
        return list(self._parameters)

    @property
    def is_prepared(self) -> bool:
        return self._is_prepared

    @property
    def is_cl_command(self) -> bool:
        return self._is_cl_command

    @property
    def is_terse_results(self) -> bool:
        return self._is_terse_results

    @property
    def rows(self) -> int:
        return self._rows

    @property
    def state(self) -> QueryState:
        return self._state

    @property
    def correlation_id(self) -> Optional[str]:
        """Server handle used by fetch_more() and close(); set by the first successful run"""
        return self._correlation_id

    def _send_request(self, request) -> Dict[str, Any]:
        return parse_reply(self._job.exchange(json.dumps(request.to_dict())))

    def _check_can_run(self) -> None:
        if self._state == QueryState.RUN_MORE_DATA_AVAILABLE:
            raise StatementAlreadyRunError("Statement has already been run")
        if self._state in (QueryState.RUN_DONE, QueryState.ERROR):
            raise StatementAlreadyCompletedError(
                "Statement has already been fully run"
            )

    def _handle_run_reply(self, results: Dict[str, Any]) -> Dict[str, Any]:
        if not is_success(results) and not self._is_cl_command:
            self._state = QueryState.ERROR
            details = error_details(results)
            raise QueryFailedError(error_message(details), context=details, reply=results)

        self._state = QueryState.from_is_done(is_done(results))
        self._correlation_id = results.get("id")
        return results

    def execute(self, rows: Optional[int] = None) -> Dict[str, Any]:
        """
        Run the statement and return the daemon's reply.

        Args:
            rows: maximum number of rows in the first batch; also becomes the batch size
                for later fetch_more() calls. Ignored for CL commands. Only None falls back
                to the current batch size (100 by default); `rows=0` is sent to the daemon as 0.

        Raises:
            StatementAlreadyRunError: If the statement has run and still has rows to fetch
            StatementAlreadyCompletedError: If the statement is done or failed
            QueryFailedError: If the daemon reports a failure for a SQL statement
        """
        self._check_can_run()
        if rows is not None:
            self._rows = rows

        if self._is_cl_command:
            request = ClCommandRequest(
                id=self._job.get_new_unique_id("clcommand"),
                cmd=self._sql,
                terse=self._is_terse_results,
            )
        else:
            request = ExecuteSqlRequest(
                id=self._job.get_new_unique_id("query"),
                sql=self._sql,
                rows=self._rows,
                terse=self._is_terse_results,
                parameters=self._parameters,
                is_prepared=self._is_prepared,
            )

        return self._handle_run_reply(self._send_request(request))

    def prepare_sql_execute(self, rows: int = 0) -> Dict[str, Any]:
        """
        Prepare the statement and run it with the bound parameters, whether or not
        parameters were given.

        Same state rules and failure handling as execute().
        """
        self._check_can_run()

        request = PrepareSqlExecuteRequest(
            id=self._job.get_new_unique_id("prepare_sql_execute"),
            sql=self._sql,
            rows=rows,
            parameters=self._parameters,
        )
        return self._handle_run_reply(self._send_request(request))

    def fetch_more(self, rows: Optional[int] = None) -> Dict[str, Any]:
        """
        Fetch the next batch of rows.

        Raises:
            StatementNotYetRunError: If the statement has not run
            StatementAlreadyCompletedError: If the statement is done or failed
            QueryFailedError: If the daemon reports a failure
        """
        if self._state == QueryState.NOT_YET_RUN:
            raise StatementNotYetRunError("Statement has not been run")
        if self._state in (QueryState.RUN_DONE, QueryState.ERROR):
            raise StatementAlreadyCompletedError(
                "Statement has already been fully run"
            )
        if rows is not None:
            self._rows = rows

        request = FetchMoreRequest(
            id=self._job.get_new_unique_id("fetchMore"),
            cont_id=self._correlation_id,
            sql=self._sql,
            rows=self._rows,
        )
        results = self._send_request(request)

        if not is_success(results) and not self._is_cl_command:
            self._state = QueryState.ERROR
            message = results.get("error") or UNKNOWN_FETCH_FAILURE
            raise QueryFailedError(
                str(message), context={"error": message}, reply=results
            )

        self._state = QueryState.from_is_done(is_done(results))
        return results

    def close(self) -> Optional[Dict[str, Any]]:
        """
        Release the server cursor.

        Returns the daemon's reply, or None when nothing had to be released.

        Raises:
            NotConnectedError: If the owning job has no channel
        """
        if not self._job.is_connected:
            raise NotConnectedError("SQL Job not connected")

        if self._correlation_id and self._state != QueryState.RUN_DONE:
            self._state = QueryState.RUN_DONE
            request = CloseQueryRequest(
                id=self._job.get_new_unique_id("sqlclose"),
                cont_id=self._correlation_id,
            )
            return self._send_request(request)
        elif not self._correlation_id:
            self._state = QueryState.RUN_DONE
        return None

    def _close_quietly(self) -> None:
        job = getattr(self, "_job", None)
        if job is None or not job.is_connected:
            return
        # a finalizer can fire between a send and its receive
        if job.has_request_in_flight:
            logger.debug(
                "Skipping close of query %s, a request is in flight",
                self._correlation_id,
            )
            return
        try:
            self.close()
        except Exception as e:
            logger.debug("Couldn't close query %s: %s", self._correlation_id, e)
