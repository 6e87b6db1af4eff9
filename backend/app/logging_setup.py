import logging
from typing import Any, MutableMapping

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Prefixes every record with the session id so one run's lines can be grepped together."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[{self.extra['session_id']}] {msg}", kwargs


def session_logger(logger: logging.Logger, session_id: str) -> SessionLoggerAdapter:
    return SessionLoggerAdapter(logger, {"session_id": session_id})
