import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from ..chaincode.errors import AccessDenied, ChaincodeError, EvidenceExists, EvidenceNotFound
from ..http_errors import error_response, install_error_handlers
from . import config
from .fabric import FabricGateway, GatewayNotConnected, UnknownOrg
from .routes import router as fabric_router

logger = logging.getLogger(__name__)


def _status_for(exc: ChaincodeError) -> int:
    if isinstance(exc, AccessDenied):
        return 403
    if isinstance(exc, EvidenceNotFound):
        return 404
    if isinstance(exc, EvidenceExists):
        return 409
    return 400


def create_app(fabric: FabricGateway = None) -> FastAPI:
    fabric = fabric or FabricGateway()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if not fabric.connected:
            logger.info("Connecting to Fabric network...")
            fabric.initialize()
        yield
        logger.info("Shutting down...")
        fabric.close()

    app = FastAPI(title="ChainProof Fabric Gateway", version="1.0", lifespan=lifespan)
    app.state.fabric = fabric

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_error_handlers(app)

    @app.exception_handler(ChaincodeError)
    async def chaincode_error_handler(request: Request, exc: ChaincodeError):
        logger.error("Chaincode error on %s: %s", request.url.path, exc)
        return error_response(_status_for(exc), str(exc))

    @app.exception_handler(UnknownOrg)
    async def unknown_org_handler(request: Request, exc: UnknownOrg):
        return error_response(400, str(exc))

    @app.exception_handler(GatewayNotConnected)
    async def not_connected_handler(request: Request, exc: GatewayNotConnected):
        return error_response(503, str(exc))

    @app.get("/health")
    def health():
        return {
            "status": "healthy",
            "service": "ChainProof Fabric Gateway",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "fabric": {
                "channel": fabric.channel,
                "chaincode": fabric.chaincode_name,
                "org": fabric.get_current_org(),
                "connected": fabric.connected,
            },
        }

    app.include_router(fabric_router)
    return app


def run():
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(
        "ChainProof Fabric Gateway on port %s (channel=%s, chaincode=%s, org=%s)",
        config.PORT, config.CHANNEL_NAME, config.CHAINCODE_NAME, config.DEFAULT_ORG,
    )
    uvicorn.run(create_app(), host="0.0.0.0", port=config.PORT)


if __name__ == "__main__":
    run()
