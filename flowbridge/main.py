"""
flowbridge service

Hosts the inbound webhook endpoints, the webhook deployment API and node
metadata for the workflow engine.
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import httpx
from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from flowbridge import __version__, config
from flowbridge.http.errors import ConnectorError, ErrorKind
from flowbridge.nodes.base import NodeData
from flowbridge.nodes.registry import NodeNotFoundError, NodeRegistry
from flowbridge.triggers import TriggerManager
from flowbridge.webhooks.deployments import WebhookDeployments
from flowbridge.webhooks.receiver import WebhookDispatch, create_webhook_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger("flowbridge")

# ============================================================
# Error Handling - Consistent Error Format
# ============================================================

_HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    404: "NOT_FOUND",
    422: "VALIDATION_ERROR",
    429: "RATE_LIMIT_EXCEEDED",
    500: "INTERNAL_SERVER_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
    504: "GATEWAY_TIMEOUT",
}

_CONNECTOR_ERROR_STATUS = {
    ErrorKind.REQUIRED_DATA_MISSING: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.RETRY_EXHAUSTED: 503,
    ErrorKind.DEADLINE_EXCEEDED: 504,
}


def _error_response(
    status: int,
    code: str,
    message: str,
    details: Optional[List[Dict[str, Any]]] = None,
) -> JSONResponse:
    """Create a standardized error JSONResponse."""
    body: Dict[str, Any] = {
        "error": {
            "code": code,
            "status": status,
            "message": message,
        }
    }
    if details is not None:
        body["error"]["details"] = details
    return JSONResponse(status_code=status, content=body)


async def http_exception_handler(request: Request, exc: HTTPException):
    code = _HTTP_ERROR_CODES.get(exc.status_code, "ERROR")
    return _error_response(exc.status_code, code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = []
    for err in exc.errors():
        details.append({
            "field": ".".join(str(part) for part in err.get("loc", [])),
            "message": err.get("msg", ""),
            "type": err.get("type", ""),
        })
    return _error_response(422, "VALIDATION_ERROR", "Request validation failed", details)


async def connector_exception_handler(request: Request, exc: ConnectorError):
    status = _CONNECTOR_ERROR_STATUS.get(exc.kind, 502)
    logger.warning("Connector error on %s: %s", request.url.path, exc.message)
    return _error_response(status, exc.kind.value.upper(), exc.message)


async def general_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _error_response(500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred")


# ============================================================
# API Models
# ============================================================

class DeployWebhookRequest(BaseModel):
    node: str = Field(..., description="Registered node name")
    node_id: str = ""
    http_method: Optional[str] = None
    webhook_endpoint: Optional[str] = None
    actions: Optional[Dict[str, Any]] = None
    credentials: Optional[Dict[str, Any]] = None
    networks: Optional[Dict[str, Any]] = None
    input_parameters: Optional[Dict[str, Any]] = None
    workflow_short_id: Optional[str] = None

    def to_node_data(self) -> NodeData:
        return NodeData(
            node_id=self.node_id,
            actions=self.actions,
            credentials=self.credentials,
            networks=self.networks,
            input_parameters=self.input_parameters,
            workflow_short_id=self.workflow_short_id,
            webhook_endpoint=self.webhook_endpoint,
        )


class WebhookBindingModel(BaseModel):
    endpoint: str
    http_method: str
    node: str
    url: str
    webhook_id: Optional[str] = None


async def _log_dispatch(binding, result) -> None:
    logger.info("Webhook %s produced %d item(s) for %s", binding.endpoint, len(result), binding.node_name)


# ============================================================
# Application Setup
# ============================================================

def create_app(
    nodes: Optional[NodeRegistry] = None,
    dispatch: Optional[WebhookDispatch] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> FastAPI:
    """Build the service. Tests pass their own registry, dispatch and client."""
    nodes = nodes or NodeRegistry()
    deployments = WebhookDeployments(nodes, client=client)
    triggers = TriggerManager()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Discover nodes and own the shared HTTP client."""
        discovered = nodes.auto_discover()
        logger.info("Discovered %d node(s)", discovered)
        owns_client = deployments.client is None
        if owns_client:
            deployments.client = httpx.AsyncClient(timeout=config.HTTP_TIMEOUT)
        yield
        stopped = await triggers.stop_all()
        if stopped:
            logger.info("Stopped %d trigger(s)", stopped)
        if owns_client:
            await deployments.client.aclose()
            deployments.client = None

    app = FastAPI(title="flowbridge", version=__version__, lifespan=lifespan)
    app.state.nodes = nodes
    app.state.deployments = deployments
    app.state.triggers = triggers

    # Configure CORS
    allowed_origins = [
        origin.strip() for origin in config.BACKEND_CORS_ORIGINS.split(",") if origin.strip()
    ]
    if not allowed_origins:
        logger.warning("No CORS origins specified, allowing all origins in development mode")
        allowed_origins = ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ConnectorError, connector_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    # ============================================================
    # API Routes (v1)
    # ============================================================

    v1 = APIRouter(prefix="/api/v1", tags=["v1"])

    @v1.get("/health")
    async def health():
        return {"status": "ok", "version": __version__, "nodes": len(nodes.list_nodes())}

    @v1.get("/nodes")
    async def list_nodes():
        """List registered nodes with their metadata."""
        return nodes.all_nodes_info()

    @v1.get("/webhooks", response_model=List[WebhookBindingModel])
    async def list_webhooks():
        return [
            WebhookBindingModel(
                endpoint=binding.endpoint,
                http_method=binding.http_method,
                node=binding.node_name,
                url=deployments.webhook_url(binding.endpoint),
                webhook_id=binding.webhook_id,
            )
            for binding in deployments.list_bindings()
        ]

    @v1.post("/webhooks", response_model=WebhookBindingModel, status_code=201)
    async def deploy_webhook(body: DeployWebhookRequest):
        try:
            binding = await deployments.deploy(body.node, body.to_node_data(), body.http_method)
        except NodeNotFoundError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc))
        return WebhookBindingModel(
            endpoint=binding.endpoint,
            http_method=binding.http_method,
            node=binding.node_name,
            url=deployments.webhook_url(binding.endpoint),
            webhook_id=binding.webhook_id,
        )

    @v1.delete("/webhooks/{endpoint}")
    async def undeploy_webhook(endpoint: str, http_method: str = "POST"):
        if not await deployments.undeploy(endpoint, http_method):
            raise HTTPException(status_code=404, detail=f"Webhook {endpoint} not found")
        return {"message": f"Webhook {endpoint} removed"}

    v1.include_router(create_webhook_router(deployments, dispatch or _log_dispatch))

    # Include versioned router
    app.include_router(v1)
    return app


app = create_app()


# For direct execution
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
