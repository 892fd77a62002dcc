from abc import ABC, abstractmethod


class MessageChannel(ABC):
    """
    Abstract duplex channel carrying opaque text frames to a Mapepire daemon.

    Implementations of this class are responsible for:
    - Opening the secured connection, including authentication headers and TLS policy
    - Writing one text frame per request
    - Blocking until one complete text frame arrives
    - Answering keep-alive pings

    A channel belongs to exactly one SQLJob.
    """

    @abstractmethod
    def open(self) -> None:
        """
        Opens the connection to the daemon.

        Raises:
            TransportError: If the connection cannot be established
        """
        pass

    @abstractmethod
    def send(self, message: str) -> None:
        """
        Writes one text frame.

        Raises:
            TransportError: If the frame cannot be written
        """
        pass

    @abstractmethod
    def receive(self) -> str:
        """
        Blocks until one full text frame is available and returns its payload.

        Raises:
            TransportError: If the connection fails while waiting
        """
        pass

    @abstractmethod
    def close(self) -> None:
        """Closes the connection. Calling it on a closed channel does nothing."""
        pass

    @property
    @abstractmethod
    def is_open(self) -> bool:
        pass
