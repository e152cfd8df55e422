import redis

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from beanie import init_beanie
from pymongo import AsyncMongoClient

from middleware.errors import register_exception_handlers
from middleware.request_logging import RequestLoggingMiddleware
from middleware.request_security import RequestSecurityMiddleware

from models.users import UserDocument

from routers import auth, users

from security.blacklist import RedisTokenBlacklist
from security.nonce import RedisNonceStore
from security.service import DefaultSecurityService
from security.tokens import JWTTokenService

from services.repository import BeanieUserRepository, UserRepository
from services.users import UserService

from utils.config import Settings
from utils.errors import APIError
from utils.logger import configure_logging


def create_mongo_client(settings: Settings) -> AsyncMongoClient:
    """MongoDB client whose server selection and operations are bounded by `DATABASE_TIMEOUT_SECONDS`."""
    timeout_ms = int(settings.database_timeout.total_seconds() * 1000)
    return AsyncMongoClient(
        settings.DATABASE_CONNECTION_STRING,
        serverSelectionTimeoutMS=timeout_ms,
        timeoutMS=timeout_ms,
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    redis_client: Optional[redis.Redis] = None,
    user_repository: Optional[UserRepository] = None,
) -> FastAPI:
    """Assemble the application.

    Args:
        settings (Optional[Settings], optional): Configuration. Defaults to `Settings.from_env()`.
        redis_client (Optional[redis.Redis], optional): Client for nonces and the token blacklist.
            Defaults to a client built from `REDIS_URL`.
        user_repository (Optional[UserRepository], optional): User store. Defaults to MongoDB,
            connected during application start-up.

    Returns:
        FastAPI: The configured application.
    """
    settings = settings or Settings.from_env()
    logger = configure_logging(settings)

    if redis_client is None:
        redis_client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
            socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        )

    security_service = DefaultSecurityService(
        signature_secret=settings.SIGNATURE_SECRET,
        nonce_store=RedisNonceStore(redis_client, expires_in=settings.nonce_ttl),
        timestamp_window=settings.timestamp_window,
        logger=logger,
    )
    token_service = JWTTokenService(
        access_secret=settings.ACCESS_TOKEN_SECRET,
        refresh_secret=settings.REFRESH_TOKEN_SECRET,
        blacklist=RedisTokenBlacklist(redis_client),
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
        issuer=settings.TOKEN_ISSUER,
        logger=logger,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting {app_name}...", app_name=settings.APP_NAME)

        mongo_client = None
        if user_repository is None:
            mongo_client = create_mongo_client(settings)
            await init_beanie(
                database=mongo_client[settings.DATABASE_NAME],
                document_models=[UserDocument],
            )
            logger.info("Database initialized successfully")

        if settings.CREATE_DEFAULT_ADMIN:
            try:
                await app.state.user_service.ensure_default_admin(
                    settings.DEFAULT_ADMIN_EMAIL,
                    settings.DEFAULT_ADMIN_USERNAME,
                    settings.DEFAULT_ADMIN_PASSWORD,
                )
            except APIError as e:
                logger.warning("Failed to create default admin user: {detail}", detail=e.detail)

        yield

        logger.info("Shutting down {app_name}...", app_name=settings.APP_NAME)
        if mongo_client is not None:
            await mongo_client.close()
        redis_client.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Starter API with signed, replay protected requests and token based authentication.",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.security_service = security_service
    app.state.token_service = token_service
    app.state.user_service = UserService(
        repository=user_repository if user_repository is not None else BeanieUserRepository(),
        token_service=token_service,
        enable_registration=settings.ENABLE_REGISTRATION,
        logger=logger,
    )

    app.add_middleware(
        RequestSecurityMiddleware,
        security_service=security_service,
        timestamp_window=settings.timestamp_window,
        protected_prefix=settings.API_PREFIX,
        nonce_path=settings.nonce_path,
        logger=logger,
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    # Inside the proxy headers middleware so the logged client address is the forwarded one
    app.add_middleware(RequestLoggingMiddleware, logger=logger)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=settings.TRUSTED_PROXIES)
    # Added last so it runs outermost and answers preflights before the signature checks
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.BACKEND_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app, logger)

    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(users.router, prefix=settings.API_PREFIX)
    app.include_router(users.admin_router, prefix=settings.API_PREFIX)

    return app


app = create_app()
