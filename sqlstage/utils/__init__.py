"""Utility helpers shared across sqlstage."""

from sqlstage.utils.logging import configure_logging, get_logger, log_with_context
from sqlstage.utils.serializers import from_json, to_json

__all__ = ("configure_logging", "from_json", "get_logger", "log_with_context", "to_json")
