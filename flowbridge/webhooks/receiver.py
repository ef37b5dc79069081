"""HTTP entry point for inbound webhooks."""

from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, List, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response

from flowbridge.nodes.base import WebhookExecutionData
from flowbridge.nodes.registry import NodeNotFoundError
from flowbridge.webhooks.deployments import WebhookBinding, WebhookDeployments
from flowbridge.webhooks.envelope import WebhookEnvelope

logger = logging.getLogger(__name__)

# Engine callback that starts a workflow run from the node output
WebhookDispatch = Callable[[WebhookBinding, List[WebhookExecutionData]], Awaitable[Any]]


def _webhook_response(binding: WebhookBinding, request: Request) -> Response:
    try:
        status_code = int(binding.node_data.parameter("responseCode") or 200)
    except (TypeError, ValueError):
        status_code = 200
    data = binding.node_data.parameter("responseData")
    if data is None or data == "":
        return PlainTextResponse(f"Webhook {request.url.path} received!", status_code=status_code)
    if isinstance(data, (dict, list)):
        return JSONResponse(data, status_code=status_code)
    return PlainTextResponse(str(data), status_code=status_code)


def create_webhook_router(
    deployments: WebhookDeployments,
    dispatch: Optional[WebhookDispatch] = None,
) -> APIRouter:
    """Router serving ``GET|POST /webhook/{endpoint}`` for deployed bindings."""
    router = APIRouter(tags=["webhooks"])

    async def handle(endpoint: str, request: Request) -> Response:
        binding = deployments.get(endpoint, request.method)
        if binding is None:
            raise HTTPException(status_code=404, detail=f"Webhook {request.url.path} not found")
        try:
            node = deployments.create_node(binding.node_name)
        except NodeNotFoundError:
            raise HTTPException(status_code=404, detail=f"Node {binding.node_name} not found")

        envelope = await WebhookEnvelope.from_request(request, params={"endpoint": endpoint})
        result = await node.run_webhook(binding.node_data, envelope)
        if result is None:
            logger.debug("Webhook %s ignored by %s", endpoint, binding.node_name)
        elif dispatch is not None:
            await dispatch(binding, result)
        return _webhook_response(binding, request)

    @router.get("/webhook/{endpoint:path}")
    async def receive_get(endpoint: str, request: Request) -> Response:
        return await handle(endpoint, request)

    @router.post("/webhook/{endpoint:path}")
    async def receive_post(endpoint: str, request: Request) -> Response:
        return await handle(endpoint, request)

    return router
