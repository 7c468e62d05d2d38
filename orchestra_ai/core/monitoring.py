"""
Monitoring and Tracing Configuration Module.

Optional integration with Pydantic Logfire. When enabled, the planner's
pydantic-ai calls and the SQL checkpoint store's SQLAlchemy engine are
instrumented, and the engine reports session and LLM usage events.

Every ``log_*`` helper is best-effort: a Logfire failure is logged at debug
level and never propagates into the orchestration loop.
"""

import logging
import os
from typing import Any, Optional

import logfire

logger = logging.getLogger(__name__)

# Logfire configuration from environment
LOGFIRE_ENABLED = os.getenv("LOGFIRE_ENABLED", "false").lower() in ("true", "1", "yes")
LOGFIRE_TOKEN = os.getenv("LOGFIRE_TOKEN", "")
LOGFIRE_ENVIRONMENT = os.getenv("LOGFIRE_ENVIRONMENT", "development")
LOGFIRE_SERVICE_NAME = os.getenv("LOGFIRE_SERVICE_NAME", "orchestra-ai")
LOGFIRE_SERVICE_VERSION = os.getenv("LOGFIRE_SERVICE_VERSION", "0.0.0")

# Feature flags
LOGFIRE_TRACE_PYDANTIC_AI = os.getenv("LOGFIRE_TRACE_PYDANTIC_AI", "true").lower() in ("true", "1", "yes")
LOGFIRE_TRACE_SQLALCHEMY = os.getenv("LOGFIRE_TRACE_SQLALCHEMY", "true").lower() in ("true", "1", "yes")

_active = False


def is_logfire_active() -> bool:
    return _active


def initialize_logfire(*, enabled: Optional[bool] = None, token: Optional[str] = None) -> bool:
    """
    Initialize Pydantic Logfire for monitoring and tracing.

    Args:
        enabled: Override ``LOGFIRE_ENABLED``.
        token: Override ``LOGFIRE_TOKEN``.

    Returns:
        True when Logfire was configured.
    """
    global _active

    enabled = LOGFIRE_ENABLED if enabled is None else enabled
    token = LOGFIRE_TOKEN if token is None else token

    if not enabled:
        logger.info("Logfire monitoring is disabled. Set LOGFIRE_ENABLED=true to enable.")
        return False

    if not token:
        logger.warning(
            "Logfire is enabled but LOGFIRE_TOKEN is not set. "
            "Monitoring will not work. Set LOGFIRE_TOKEN to enable Logfire."
        )
        return False

    try:
        logfire.configure(
            token=token,
            service_name=LOGFIRE_SERVICE_NAME,
            service_version=LOGFIRE_SERVICE_VERSION,
            environment=LOGFIRE_ENVIRONMENT,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Logfire: {e}", exc_info=True)
        return False

    if LOGFIRE_TRACE_PYDANTIC_AI:
        try:
            logfire.instrument_pydantic_ai()
            logger.info("Logfire: Pydantic AI instrumentation enabled")
        except Exception as e:
            logger.warning(f"Failed to instrument Pydantic AI: {e}")

    if LOGFIRE_TRACE_SQLALCHEMY:
        try:
            logfire.instrument_sqlalchemy()
            logger.info("Logfire: SQLAlchemy instrumentation enabled")
        except Exception as e:
            logger.warning(f"Failed to instrument SQLAlchemy: {e}")

    _active = True
    logger.info(f"Logfire monitoring initialized: environment={LOGFIRE_ENVIRONMENT}, service={LOGFIRE_SERVICE_NAME}")
    return True


def _emit(message: str, **attributes: Any) -> None:
    if not _active:
        return
    try:
        logfire.info(message, **attributes)
    except Exception:
        logger.debug(f"Could not log to Logfire: {message}")


def log_session_started(session_id: str, user_request: str) -> None:
    """
    Log the start of an orchestration session.

    Args:
        session_id: The session identifier
        user_request: The request driving the session
    """
    _emit("Orchestration session started", session_id=session_id, user_request=user_request)


def log_session_completed(session_id: str, status: str, step_count: int, duration_ms: float) -> None:
    """
    Log the end of an orchestration run.

    Args:
        session_id: The session identifier
        status: running (cancelled), completed or failed
        step_count: Number of recorded steps
        duration_ms: Wall time of the session so far in milliseconds
    """
    _emit(
        "Orchestration session finished",
        session_id=session_id,
        status=status,
        step_count=step_count,
        duration_ms=duration_ms,
    )


def log_llm_call(model: Optional[str], tokens_used: int, cost_usd: Optional[float] = None) -> None:
    """
    Log an LLM call with usage metrics.

    Args:
        model: The model name, when known
        tokens_used: Total tokens used in the call
        cost_usd: The cost in USD (optional)
    """
    _emit("LLM call completed", model=model or "unknown", tokens_used=tokens_used, cost_usd=cost_usd)


def log_budget_denied(function_name: str, total_tokens: int, estimated_cost: float) -> None:
    """
    Log an LLM action rejected by the token budget gate.

    Args:
        function_name: The LLM function that was not invoked
        total_tokens: Tokens the call would have used
        estimated_cost: Estimated cost of the call
    """
    _emit(
        "LLM call denied by token budget",
        function_name=function_name,
        total_tokens=total_tokens,
        estimated_cost=estimated_cost,
    )
