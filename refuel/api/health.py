from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..services.runtime import Runtime, get_runtime

router = APIRouter()


@router.get("/healthz")
async def health_check(runtime: Runtime = Depends(get_runtime)) -> Dict[str, Any]:
    """Health check endpoint that verifies provider status"""

    orchestrator = runtime.orchestrator
    provider_status: Dict[str, Any] = {
        "coingecko": await orchestrator.price_oracle.health_check(),
        "wallet_store": await orchestrator.wallet_store.health_check(),
    }
    if orchestrator.bridge_router is not None:
        provider_status["relay"] = await orchestrator.bridge_router.health_check()
    for info in runtime.directory:
        if info.gateway is not None:
            provider_status[info.chain.value] = await info.gateway.health_check()

    # Determine overall health
    all_ok = all(
        status["status"] in ["healthy", "configured"]
        for status in provider_status.values()
    )

    return {
        "status": "healthy" if all_ok else "degraded",
        "providers": provider_status,
        "inflight": runtime.engine.inflight_count,
    }
