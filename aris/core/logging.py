import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from aris.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_FORMATTER = logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT)

_LOG_FILE_PATH: Path | None = None
_LOGGING_INITIALIZED = False


class TruncatedFormatter(logging.Formatter):
  """Formatter that truncates the stack trace to the last few lines."""

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    # Keep header + last 5 lines of traceback
    if len(lines) > 6:
      return "".join(lines[:1] + ["    ...\n"] + lines[-5:])
    return "".join(lines)


def _rotated_name(default_name: str) -> str:
  """Name backups aris_app.log-1 instead of aris_app.log.1."""
  base, _, num = default_name.rpartition(".")
  if base and num.isdigit():
    return f"{base}-{num}"
  return default_name


def _build_handlers(settings: Settings) -> tuple[logging.Handler, logging.Handler, Path]:
  """Create logging handlers anchored to the repository root."""
  log_dir = Path(__file__).resolve().parents[2] / "logs"
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"aris_app_{time.strftime('%Y%m%d_%H%M%S')}.log"
  try:
    # Touch early so the file exists even if handlers have not flushed yet.
    log_path.touch(exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log file at {log_path}: {exc}") from exc

  stream = logging.StreamHandler(sys.stdout)
  stream.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))

  file_handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)
  file_handler.namer = _rotated_name
  file_handler.setFormatter(LOG_FORMATTER)
  return stream, file_handler, log_path


def setup_logging(settings: Settings) -> Path:
  """Ensure all loggers use our handlers and propagate to root."""
  stream_handler, file_handler, log_path = _build_handlers(settings)
  for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi"):
    log = logging.getLogger(logger_name)
    log.handlers = [stream_handler, file_handler]
    log.propagate = False

  level = logging.DEBUG if settings.debug else logging.INFO
  logging.basicConfig(level=level, handlers=[stream_handler, file_handler], force=True)
  # The openai/httpx clients are chatty at DEBUG and would log request payloads.
  for noisy in ("openai", "httpx", "httpcore"):
    logging.getLogger(noisy).setLevel(logging.WARNING)
  if not log_path.exists():
    raise RuntimeError(f"Logging initialization failed; log file missing at {log_path}")
  return log_path


def _log_model_routing(logger: logging.Logger, settings: Settings) -> None:
  logger.info("Model routing analysis=%s complex=%s learning=%s", settings.analysis_model, settings.complex_model, settings.learning_model)
  if not settings.openai_api_key:
    logger.warning("OPENAI_API_KEY is not set; AI processing and learning sessions will fail.")


def _initialize_logging(settings: Settings) -> None:
  """Initialize logging and log startup messages."""
  global _LOG_FILE_PATH, _LOGGING_INITIALIZED
  logger = logging.getLogger("aris.core.logging")
  if _LOGGING_INITIALIZED:
    return
  log_path = setup_logging(settings)
  _LOG_FILE_PATH = log_path
  _LOGGING_INITIALIZED = True
  logger.info("Logging initialized. Writing to %s", _LOG_FILE_PATH)
  _log_model_routing(logger, settings)
