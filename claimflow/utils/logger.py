"""
Logging Configuration
Console, application, error, audit and email-delivery sinks
"""

from loguru import logger
import sys
from pathlib import Path

from claimflow.config.settings import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
TRAIL_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {message}"

_configured = False


def _rotating(path, retention: str, **options):
    logger.add(path, rotation="10 MB", retention=retention, compression="zip", **options)


def setup_logger():
    """
    Setup application logger with file and console output

    Sinks are installed once per process; later calls return the
    already configured logger.

    Returns:
        logger: Configured logger instance
    """
    global _configured
    if _configured:
        return logger

    logger.remove()

    log_dir = Path(settings.LOG_DIRECTORY)
    log_dir.mkdir(parents=True, exist_ok=True)

    logger.add(sys.stdout, format=CONSOLE_FORMAT, level=settings.LOG_LEVEL, colorize=True)

    _rotating(settings.LOG_FILE, "30 days", format=FILE_FORMAT, level=settings.LOG_LEVEL)
    _rotating(log_dir / "error.log", "90 days", format=FILE_FORMAT, level="ERROR")

    # Claim state changes, kept for a year
    _rotating(log_dir / "audit.log", "365 days", format=TRAIL_FORMAT,
              filter=lambda record: "AUDIT" in record["extra"])

    # Email deliveries and failures
    _rotating(log_dir / "notifications.log", "90 days", format=TRAIL_FORMAT,
              filter=lambda record: "NOTIFY" in record["extra"])

    _configured = True
    return logger


def log_audit(actor_id: int, action: str, details: str):
    """
    Log audit trail entry

    Args:
        actor_id: Employee ID who performed the action
        action: Action performed, e.g. CLAIM_APPROVED
        details: Action details
    """
    logger.bind(AUDIT=True).info(f"ACTOR_ID={actor_id} | ACTION={action} | DETAILS={details}")


def log_notification(claim_id: int, recipient: str, kind: str, delivered: bool, reason: str = None):
    """Record one email delivery attempt for a claim"""
    outcome = "SENT" if delivered else f"FAILED ({reason})" if reason else "SKIPPED"
    logger.bind(NOTIFY=True).info(f"CLAIM={claim_id} | TO={recipient} | KIND={kind} | {outcome}")
