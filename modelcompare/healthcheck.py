"""Provider health checks: ping selected models and report breaker state."""

import asyncio
import logging

from modelcompare.registry import ProviderRegistry

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(registry: ProviderRegistry, model_id: str) -> tuple[str, bool, str]:
    """Ping a single model. Returns (model_id, ok, error_message)."""
    try:
        await asyncio.wait_for(registry.call_model(_PING_PROMPT, model_id), timeout=_TIMEOUT_SEC)
        return model_id, True, ""
    except TimeoutError:
        return model_id, False, f"No reply within {_TIMEOUT_SEC:.0f}s"
    except Exception as exc:
        return model_id, False, str(exc)


async def run_health_checks(
    registry: ProviderRegistry,
    model_ids: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping all models in parallel through the registry (and so through their breakers).

    Returns:
        Dict mapping model id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results = await asyncio.gather(*(_check_one(registry, m) for m in model_ids))
    for model_id, ok, err in results:
        if not ok:
            logger.warning("Health check failed for %s: %s", model_id, err)
    return {model_id: (ok, err) for model_id, ok, err in results}


def service_status(registry: ProviderRegistry) -> dict[str, object]:
    """Summarize breaker state: degraded while any breaker is not CLOSED."""
    breakers = registry.breaker_states()
    degraded = any(b["state"] != "CLOSED" for b in breakers.values())
    return {
        "status": "degraded" if degraded else "healthy",
        "totalModels": len(registry.get_all_models()),
        "providers": breakers,
    }
