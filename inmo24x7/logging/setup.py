import logging
import sys

_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service process."""

    root_logger = logging.getLogger()
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root_logger.setLevel(numeric_level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))

    # Replace handlers so repeated app factories don't duplicate output
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)

    # Silence noisy loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("postgrest").setLevel(logging.WARNING)
    logging.getLogger("inmo24x7.logging.flight_recorder").setLevel(max(numeric_level, logging.WARNING))

    logging.getLogger("inmo24x7").setLevel(numeric_level)
    logging.getLogger("inmo24x7.services.conversation").setLevel(numeric_level)
