"""
Reply decoding for the Mapepire daemon protocol.

Replies are handed back to callers as the decoded dictionaries; the helpers
here only read the fields the protocol layer acts on.
"""

import json
from typing import Dict, Any

from mapepire.sql.exc import InvalidServerResponseError

ERROR_DETAIL_KEYS = ("error", "sql_state", "sql_rc")
UNKNOWN_QUERY_FAILURE = "failed to run query for unknown reason"
UNKNOWN_FETCH_FAILURE = "Failed to run Query (unknown error)"
UNKNOWN_CONNECT_FAILURE = "Failed to connect to server."


def parse_reply(raw: str) -> Dict[str, Any]:
    """Decode one reply frame. Anything that decodes to a non-object becomes an empty dict."""
    try:
        decoded = json.loads(raw)
    except (TypeError, ValueError) as e:
        raise InvalidServerResponseError(
            "Server reply is not valid JSON",
            context={"original-exception": str(e)},
        ) from e
    return decoded if isinstance(decoded, dict) else {}


def is_success(reply: Dict[str, Any]) -> bool:
    return bool(reply.get("success", False))


def is_done(reply: Dict[str, Any]) -> bool:
    return bool(reply.get("is_done", False))


def error_details(reply: Dict[str, Any]) -> Dict[str, Any]:
    """Collect the failure fields present in a reply, falling back to a generic error."""
    details = {key: reply[key] for key in ERROR_DETAIL_KEYS if key in reply}
    if not details:
        details["error"] = UNKNOWN_QUERY_FAILURE
    return details


def error_message(details: Dict[str, Any]) -> str:
    if "error" in details:
        return str(details["error"])
    return "failed to run query ({})".format(
        ", ".join("{}={}".format(key, value) for key, value in details.items())
    )
