"""Concurrent fan-out of one prompt to several models."""

import asyncio
import logging
from typing import Any

from modelcompare.errors import ModelCompareError
from modelcompare.registry import ProviderRegistry

logger = logging.getLogger(__name__)


async def _respond(registry: ProviderRegistry, prompt: str, model_id: str) -> dict[str, Any]:
    """One comparison entry. Never raises; failures become status=error entries."""
    try:
        response = await registry.call_model(prompt, model_id)
    except ModelCompareError as exc:
        logger.warning("Comparison call to %s failed: %s", model_id, exc.message)
        return {"content": "", "status": "error", "responseTime": 0, "error": exc.message}
    except Exception as exc:
        logger.exception("Comparison call to %s failed unexpectedly", model_id)
        return {"content": "", "status": "error", "responseTime": 0, "error": "An unexpected error occurred"}
    entry = response.to_dict()
    entry["status"] = "success"
    return entry


async def compare_models(
    registry: ProviderRegistry, prompt: str, model_ids: list[str]
) -> dict[str, dict[str, Any]]:
    """Call every model concurrently; each entry resolves independently of the others."""
    unique_ids = list(dict.fromkeys(model_ids))
    results = await asyncio.gather(*(_respond(registry, prompt, m) for m in unique_ids))
    return dict(zip(unique_ids, results))
