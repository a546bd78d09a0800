import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from pettycash.core.config import get_settings
from pettycash.core.errors import register_error_handlers
from pettycash.core.logging import setup_logging

logger = logging.getLogger(__name__)

settings = get_settings()

# Create FastAPI app instance
app = FastAPI(
    title=settings.APP_NAME,
    description="Petty cash tracking: admin-funded balances, multi-currency wallets, expenses with edit history, backed by a hosted Postgres/auth platform.",
    version="1.0.0",
    debug=settings.DEBUG,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=[
        {
            "name": "Authentication",
            "description": "Email/password sign-in and session cookie"
        },
        {
            "name": "Balance",
            "description": "Caller's balance and recent fund movements"
        },
        {
            "name": "Transactions",
            "description": "Fund ledger and expenses, including edit history"
        },
        {
            "name": "Profile",
            "description": "Caller's own profile"
        },
        {
            "name": "Admin",
            "description": "Fund top-ups and user management for admins"
        },
        {
            "name": "Wallets",
            "description": "Per-user multi-currency wallets"
        }
    ],
    swagger_ui_parameters={
        "persistAuthorization": True,
    }
)

register_error_handlers(app)

# Session middleware - holds the platform access token for browser clients
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.SECRET_KEY,
    session_cookie=settings.SESSION_COOKIE,
    max_age=settings.SESSION_MAX_AGE_SECONDS,
)

# CORS middleware - the web frontend runs on its own origin
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    """
    Runs when the application starts up.
    Configures logging.
    :return:
    """
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    logger.info(f"Starting up {settings.APP_NAME}...")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Runs when the application shuts down.
    :return:
    """
    logger.info(f"Shutting down {settings.APP_NAME}...")


@app.get("/")
async def root():
    """
    Health check endpoint.
    :return:
    """
    return {
        "message": "Welcome to Petty Cash Service API!",
        "status": "healthy",
        "version": "1.0.0"
    }


@app.get("/health")
async def health_check():
    """
    Health check endpoint.
    :return:
    """
    return {
        "status": "healthy",
        "platform": settings.SUPABASE_URL,
        "app_name": settings.APP_NAME
    }


# Import and include API routers
from pettycash.api import admin, admin_wallets, auth, balance, profile, transactions

app.include_router(auth.router)
app.include_router(balance.router)
app.include_router(transactions.router)
app.include_router(profile.router)
app.include_router(admin.router)
app.include_router(admin_wallets.router)
