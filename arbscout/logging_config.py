"""Structured logging for the scout service.

Console output stays human-readable; ``logs/app.log`` and ``logs/error.log``
carry one JSON object per line for Loki/Promtail. Scout context bound through
``get_logger`` (config id, config name, platform) lands as top-level JSON
keys so cycles can be filtered per config.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from pythonjsonlogger import jsonlogger

from arbscout.config import settings

SERVICE_NAME = "arbscout"

# Keys promoted from a record's extra fields into every JSON line when present
CONTEXT_FIELDS = ("config_id", "config_name", "platform", "keyword")

# Third-party loggers that are too verbose at INFO
QUIET_LOGGERS = ("apscheduler", "httpx", "httpcore", "aiosqlite")


class ScoutJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter that stamps service, level, source and scout context."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        log_record["timestamp"] = datetime.utcnow().isoformat() + "Z"
        log_record["service"] = SERVICE_NAME
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.filename}:{record.lineno}"

        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                log_record[key] = value


def setup_logging(base_dir: str | Path | None = None, level: str | None = None):
    """Configure root logging for the API process and scripts.

    Args:
        base_dir: Directory to create ``logs/`` in (defaults to the cwd)
        level: Root level name (defaults to settings.log_level)
    """
    logs_dir = (Path(base_dir) if base_dir else Path.cwd()) / "logs"
    logs_dir.mkdir(exist_ok=True)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, (level or settings.log_level).upper()))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )
    root_logger.addHandler(console_handler)

    json_formatter = ScoutJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    for filename, handler_level in (("app.log", logging.DEBUG), ("error.log", logging.ERROR)):
        handler = logging.FileHandler(logs_dir / filename)
        handler.setLevel(handler_level)
        handler.setFormatter(json_formatter)
        root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # SQL echo is controlled by settings.debug on the engine itself
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.debug else logging.WARNING
    )

    return root_logger


class ScoutLogAdapter(logging.LoggerAdapter):
    """Adapter carrying scout context into each record's extra fields."""

    def process(self, msg, kwargs):
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return msg, kwargs

    def bind(self, **context) -> "ScoutLogAdapter":
        """Return an adapter with ``context`` added to this one's."""
        return ScoutLogAdapter(self.logger, {**self.extra, **context})


def get_logger(name: str, **context) -> ScoutLogAdapter:
    """
    Get a logger bound to scout context.

    Args:
        name: Logger name (usually __name__)
        **context: Context fields, e.g. config_id='...', platform='amazon'
    """
    return ScoutLogAdapter(logging.getLogger(name), context)
