import ssl
from typing import Any, Dict, Optional


class SSLOptions:
    tls_verify: bool
    tls_verify_hostname: bool
    tls_trusted_ca_file: Optional[str]

    def __init__(
        self,
        tls_verify: bool = True,
        tls_verify_hostname: bool = True,
        tls_trusted_ca_file: Optional[str] = None,
    ):
        """
        Keep the TLS verification policy for a channel.

        Args:
            tls_verify: verify the server certificate against the trust store
            tls_verify_hostname: check the certificate is issued for the host we connect to.
                Ignored when `tls_verify` is False.
            tls_trusted_ca_file: CA bundle to pin verification to. When unset the system
                trust store is used.
        """
        self.tls_verify = tls_verify
        self.tls_verify_hostname = tls_verify and tls_verify_hostname
        self.tls_trusted_ca_file = tls_trusted_ca_file

    def to_sslopt(self) -> Dict[str, Any]:
        """Return the `sslopt` mapping understood by websocket-client."""
        sslopt: Dict[str, Any] = {
            "cert_reqs": ssl.CERT_REQUIRED if self.tls_verify else ssl.CERT_NONE,
            "check_hostname": self.tls_verify_hostname,
        }
        if self.tls_verify and self.tls_trusted_ca_file:
            sslopt["ca_certs"] = self.tls_trusted_ca_file
        return sslopt

    def __eq__(self, other):
        if not isinstance(other, SSLOptions):
            return NotImplemented
        return (
            self.tls_verify == other.tls_verify
            and self.tls_verify_hostname == other.tls_verify_hostname
            and self.tls_trusted_ca_file == other.tls_trusted_ca_file
        )

    def __repr__(self):
        return (
            "SSLOptions(tls_verify={}, tls_verify_hostname={}, tls_trusted_ca_file={})".format(
                self.tls_verify, self.tls_verify_hostname, self.tls_trusted_ca_file
            )
        )
