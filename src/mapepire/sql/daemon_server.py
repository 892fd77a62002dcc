import configparser
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

from mapepire.sql.exc import InvalidConfigurationError
from mapepire.sql.types import SSLOptions

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8076
DAEMON_PATH = "/db/"

_TRUE_STRINGS = ("1", "true", "on", "yes")
_INI_INLINE_COMMENT = re.compile(r"\s[;#].*$")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in _TRUE_STRINGS


def _ini_value(raw: str) -> str:
    """Unquote an INI value, or drop its trailing inline comment when it is unquoted.

    Quoted values are taken literally, so `PASSWORD="p;w=d"` yields `p;w=d`.
    """
    value = raw.strip()
    if value[:1] in ('"', "'"):
        end = value.find(value[0], 1)
        if end != -1:
            return value[1:end]
    return _INI_INLINE_COMMENT.sub("", value).strip()


def _parse_port(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidConfigurationError(
            "port must be an integer.", context={"port": value}
        )
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidConfigurationError(
            "port must be an integer.", context={"port": value}
        ) from e


@dataclass(frozen=True)
class DaemonServer:
    """
    Where and how to reach a Mapepire daemon.

    Instances are immutable and validated when they are built. Use `from_dict`
    or `from_ini` to build one from a mapping or an INI file.

    Attributes:
        host: host name of the IBM i running the daemon
        user: user profile to sign on with
        password: password of `user`; never logged
        port: daemon port, 8076 unless configured otherwise
        ignore_unauthorized: skip TLS certificate and host name verification
        ca: path to a CA bundle to pin verification to
    """

    host: str
    user: str
    password: str = field(repr=False)
    port: int = DEFAULT_PORT
    ignore_unauthorized: bool = False
    ca: Optional[str] = None

    def __post_init__(self):
        for name in ("host", "user", "password"):
            value = getattr(self, name)
            if not isinstance(value, str) or value == "":
                raise InvalidConfigurationError(
                    "{} must be a non-empty string.".format(name)
                )
        if (
            isinstance(self.port, bool)
            or not isinstance(self.port, int)
            or not 1 <= self.port <= 65535
        ):
            raise InvalidConfigurationError(
                "port must be between 1 and 65535.", context={"port": self.port}
            )
        if self.ca and not self.ignore_unauthorized:
            if not (os.path.isfile(self.ca) and os.access(self.ca, os.R_OK)):
                raise InvalidConfigurationError(
                    "CA file is not readable: {}".format(self.ca),
                    context={"ca": self.ca},
                )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DaemonServer":
        """
        Build a DaemonServer from a mapping.

        Args:
            data: mapping with the required keys `host`, `user` and `password`, and the
                optional keys `port`, `ignoreUnauthorized` (or `ignore_unauthorized`) and `ca`.

        Raises:
            InvalidConfigurationError: if a required key is missing or a value is invalid
        """
        missing = [
            key for key in ("host", "user", "password") if data.get(key) is None
        ]
        if missing:
            raise InvalidConfigurationError(
                "host, user, and password are required keys.",
                context={"missing-keys": missing},
            )

        if "ignoreUnauthorized" in data:
            ignore_unauthorized = _parse_bool(data["ignoreUnauthorized"])
        else:
            ignore_unauthorized = _parse_bool(data.get("ignore_unauthorized", False))

        ca = data.get("ca")
        return cls(
            host=str(data["host"]),
            user=str(data["user"]),
            password=str(data["password"]),
            port=_parse_port(data["port"]) if "port" in data else DEFAULT_PORT,
            ignore_unauthorized=ignore_unauthorized,
            ca=str(ca) if ca is not None else None,
        )

    @classmethod
    def from_ini(cls, path: str, section: Optional[str] = None) -> "DaemonServer":
        """
        Build a DaemonServer from a section of an INI file.

        Keys are matched case-insensitively. SERVER, USER and PASSWORD are required;
        PORT, IGNOREUNAUTHORIZED and CA are optional. Values may be wrapped in double or
        single quotes; unquoted values end at an inline `;` or `#` comment.

        Args:
            path: path to the INI file
            section: section to read; the first section of the file when None

        Raises:
            InvalidConfigurationError: if the file cannot be parsed, is empty, or lacks
                the section or a required key
        """
        parser = configparser.ConfigParser(interpolation=None, delimiters=("=",))
        try:
            read_ok = parser.read(path)
        except configparser.Error as e:
            raise InvalidConfigurationError(
                "INI parse failed: {}".format(path), context={"path": path}
            ) from e

        if not read_ok or not parser.sections():
            raise InvalidConfigurationError(
                "INI parse failed or is empty: {}".format(path), context={"path": path}
            )

        if section is None:
            section = parser.sections()[0]
        elif not parser.has_section(section):
            raise InvalidConfigurationError(
                "Section '{}' not found in INI file.".format(section),
                context={"path": path, "section": section},
            )

        logger.debug("Reading daemon server from %s [%s]", path, section)

        # configparser lower-cases option names
        data = {key: _ini_value(value) for key, value in parser.items(section)}
        if not all(key in data for key in ("server", "user", "password")):
            raise InvalidConfigurationError(
                "INI must include SERVER, USER, and PASSWORD.",
                context={"path": path, "section": section},
            )

        return cls(
            host=data["server"],
            user=data["user"],
            password=data["password"],
            port=_parse_port(data["port"]) if "port" in data else DEFAULT_PORT,
            ignore_unauthorized=_parse_bool(data.get("ignoreunauthorized")),
            ca=data.get("ca") or None,
        )

    @property
    def url(self) -> str:
        return "wss://{}:{}{}".format(self.host, self.port, DAEMON_PATH)

    @property
    def ssl_options(self) -> SSLOptions:
        return SSLOptions(
            tls_verify=not self.ignore_unauthorized,
            tls_verify_hostname=not self.ignore_unauthorized,
            tls_trusted_ca_file=self.ca,
        )
