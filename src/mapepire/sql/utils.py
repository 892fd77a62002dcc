import itertools
import logging
import threading
from typing import Any, Mapping, Optional

logger = logging.getLogger(__name__)


class UniqueIdGenerator:
    """
    Hands out request ids that are unique for the lifetime of the generator.

    The server echoes ids back, so two requests must never share one. One
    instance is shared by every SQLJob in the process unless a job is given
    its own.
    """

    def __init__(self, start: int = 1):
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def next_id(self, prefix: str = "id") -> str:
        with self._lock:
            value = next(self._counter)
        return "{}{}".format(prefix, value)


default_id_generator = UniqueIdGenerator()


def _format_prop_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple)):
        return ",".join(_format_prop_value(v) for v in value)
    return str(value)


def build_connection_props(options: Optional[Mapping[str, Any]]) -> str:
    """Flatten session options into the `key=value;key=value` string the connect request carries.

    List values are joined with commas, e.g. {"libraries": ["A", "B"]} -> "libraries=A,B".
    """
    if not options:
        return ""
    return ";".join(
        "{}={}".format(key, _format_prop_value(value)) for key, value in options.items()
    )
