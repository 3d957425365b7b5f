import os

from fastapi import APIRouter, FastAPI, HTTPException, status, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from .internal.schemas import PROD_ENVIRONMENT
from .internal.timing_middleware import TimingMiddleware

class HSTSMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        try:
            response: Response = await call_next(request)
        except Exception:
            return JSONResponse(
                {"detail": "Internal server error in middleware."},
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
            )

        response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"
        return response

class EndpointServiceCoordinator:

    default_origins = [
        # localhost
        "http://localhost:5173",
        "https://localhost:5173",
    ]

    def __init__(self, routers, environment):
        is_prod_environment = environment == PROD_ENVIRONMENT
        openapi_url = "/openapi.json" if not is_prod_environment else None
        docs_url = "/docs" if not is_prod_environment else None
        redoc_url = "/redoc" if not is_prod_environment else None
        self.app = FastAPI(title="SessionBoard API Service",
                           openapi_url=openapi_url,
                           docs_url=docs_url,
                           redoc_url=redoc_url)
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.origins(),
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.app.add_middleware(TimingMiddleware)
        self.app.add_middleware(HSTSMiddleware)
        self.environment = environment

        try:
            assert len(routers) > 0, "Did not receive any routers"

            for router in routers:
                assert type(router) is APIRouter, "Received invalid object instead of router"
                self.app.include_router(router)

        except Exception as e:
            raise HTTPException(detail=str(e), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    def origins(self) -> list[str]:
        """
        Returns the allowed CORS origins: the comma-separated ALLOWED_ORIGINS variable, or the local dev origins.
        """
        configured = [origin.strip() for origin in (os.environ.get("ALLOWED_ORIGINS") or "").split(",")]
        configured = [origin for origin in configured if len(origin) > 0]
        return configured if len(configured) > 0 else self.default_origins
