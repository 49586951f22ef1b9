"""Base sender interface and factory"""
import abc
from typing import Optional, Sequence
from config import Config
from metrics.models import Sample


class BaseSender(abc.ABC):
    """Abstract base class for anything that can deliver a batch of samples"""

    @abc.abstractmethod
    def send(self, batch: Sequence[Sample]) -> None:
        """Deliver a batch; raises TransportFailure when delivery failed"""
        pass

    def reset_connection(self) -> None:
        """Forget any open connection so the next send reconnects"""

    def close(self) -> None:
        """Release the connection"""

    def is_healthy(self) -> bool:
        return True


class SenderFactory:
    """Factory for creating the sender a client should use"""

    @staticmethod
    def create_sender(config: Config, server: str, custom_sender: Optional[BaseSender] = None,
                      connection_logger=None) -> BaseSender:
        """Return the custom sender if one was given, else a plaintext sender"""
        if custom_sender is not None:
            if not isinstance(custom_sender, BaseSender):
                raise ValueError("Sender must inherit from BaseSender")
            return custom_sender

        from .plaintext import PlaintextSender
        return PlaintextSender(
            server,
            connection_logger=connection_logger,
            connect_timeout=config.connect_timeout
        )
