from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from portal.config import settings
from portal.middleware.logging_md import LoggingMiddleware
from portal.logging.logger import LogConfig
from portal.database.manager import DatabaseManager
from portal.exceptions.handler import BusinessException, global_exception_handler
from apps.identity.api.router import router as identity_router
from apps.users.api.router import router as users_router
from apps.connections.api.router import router as connections_router
from apps.consultations.api.router import router as consultations_router
from apps.records.api.router import router as records_router
from apps.providers.api.router import router as providers_router
from apps.admin.api.router import router as admin_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    if DatabaseManager._instance is not None:
        await DatabaseManager._instance.close()


app = FastAPI(
    title=settings.APP_NAME,
    description=settings.APP_DESCRIPTION,
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
    lifespan=lifespan,
)

# Initialize logging configuration
LogConfig.setup_logging()

# Register global exception handlers
app.add_exception_handler(BusinessException, global_exception_handler)
app.add_exception_handler(RequestValidationError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)

app.add_middleware(LoggingMiddleware)

# Mount routers (prefixes from config)
app.include_router(identity_router, prefix=settings.API_V1_AUTH_PREFIX, tags=["Auth"])
app.include_router(users_router, prefix=settings.API_V1_USERS_PREFIX, tags=["Users"])
app.include_router(connections_router, prefix=settings.API_V1_CONNECTIONS_PREFIX, tags=["Connections"])
app.include_router(consultations_router, prefix=settings.API_V1_CONSULTATIONS_PREFIX, tags=["Consultations"])
app.include_router(records_router, prefix=settings.API_V1_RECORDS_PREFIX, tags=["Medical Records"])
app.include_router(providers_router, prefix=settings.API_V1_PROVIDER_PREFIX, tags=["Provider"])
app.include_router(admin_router, prefix=settings.API_V1_ADMIN_PREFIX, tags=["Admin"])


@app.get("/health", tags=["Health"])
async def health():
    return {"status": "ok", "app": settings.APP_NAME, "version": settings.APP_VERSION}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
