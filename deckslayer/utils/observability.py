"""
Logging
Loguru setup plus the structured event helpers used by the committee pipeline.

Every helper binds its fields onto the record, so the JSON sink carries them
as `extra` while the console sink only shows the short message.
"""
import sys
from typing import Any
from loguru import logger
from deckslayer.config import get_settings

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> | "
    "{message}"
)


def configure_logging(level: str | None = None, structured: bool | None = None) -> None:
    """
    Replace loguru's default sink with the service's own.

    Args:
        level: Minimum level, defaults to LOG_LEVEL
        structured: JSON lines instead of colored text, defaults to ENABLE_STRUCTURED_LOGGING
    """
    settings = get_settings()
    level = level or settings.log_level
    structured = settings.enable_structured_logging if structured is None else structured

    logger.remove()

    if structured:
        logger.add(sys.stderr, level=level, format="{message}", serialize=True)
    else:
        logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    logger.info(f"Logging ready (level={level}, structured={structured}, env={settings.environment})")


def log_agent_execution(
    agent_name: str,
    user_id: str,
    action: str,
    duration_ms: float | None = None,
    **context: Any
) -> None:
    """
    One pipeline step finished.

    Example:
        >>> log_agent_execution("PersonaDispatcher", "5b6f...", "dispatch", 8234.5, personas=3)
    """
    fields: dict[str, Any] = {"agent": agent_name, "user_id": user_id, "action": action, **context}
    if duration_ms is not None:
        fields["duration_ms"] = round(duration_ms, 2)

    logger.bind(**fields).info(f"{agent_name} | {action}")


def log_llm_call(
    agent_name: str,
    model: str,
    duration_ms: float,
    success: bool = True,
    error: str | None = None,
    output_chars: int | None = None
) -> None:
    """
    One generation request, successful or not.

    Failed calls are logged at ERROR with the categorized provider message.
    """
    fields: dict[str, Any] = {
        "event_type": "llm_call",
        "agent": agent_name,
        "model": model,
        "duration_ms": round(duration_ms, 2),
        "success": success,
    }
    if output_chars is not None:
        fields["output_chars"] = output_chars
    if error:
        fields["error"] = error

    bound = logger.bind(**fields)
    message = f"LLM {agent_name} via {model} took {duration_ms:.0f}ms"
    if success:
        bound.info(message)
    else:
        bound.error(f"{message} and failed")


def log_business_event(event_type: str, user_id: str, **details: Any) -> None:
    """
    Money and persistence milestones: credits deducted or granted, analyses
    and comparisons saved, insights extracted.
    """
    logger.bind(event_type=event_type, user_id=user_id, **details).success(f"Business event: {event_type}")
