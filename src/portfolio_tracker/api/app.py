"""HTTP endpoints for prices, shared-password auth and the portfolio summary."""

import base64
import binascii
import logging
import secrets
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from portfolio_tracker.config import Settings
from portfolio_tracker.core.aggregator import calculate_portfolio_summary
from portfolio_tracker.core.errors import ProviderError, RateLimitedError, UnavailableError
from portfolio_tracker.core.models import PriceQuote
from portfolio_tracker.pricing import RATE_LIMIT_MESSAGE, PriceResolver, create_pricing, symbols_for_addresses
from portfolio_tracker.rpc.cache import TTLCache
from portfolio_tracker.storage import PortfolioStore, create_store

logger = logging.getLogger(__name__)

PRICE_CACHE_CONTROL = "public, s-maxage=300, stale-while-revalidate=60"
UNAVAILABLE_MESSAGE = "CoinGecko service is temporarily unavailable. Please try again later."


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _price_error_response(exc: ProviderError) -> JSONResponse:
    if isinstance(exc, RateLimitedError):
        response = _error(RATE_LIMIT_MESSAGE, 429)
        if exc.retry_after is not None:
            response.headers["Retry-After"] = str(int(exc.retry_after))
        return response
    if isinstance(exc, UnavailableError):
        return _error(UNAVAILABLE_MESSAGE, 503)
    status = exc.status_code if exc.status_code and exc.status_code >= 400 else 500
    return _error(f"Failed to fetch prices ({status})", status)


def _basic_credentials(header: str | None) -> tuple[str, str] | None:
    if not header or not header.lower().startswith("basic "):
        return None
    try:
        decoded = base64.b64decode(header.split(" ", 1)[1], validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        return None
    user, sep, password = decoded.partition(":")
    return (user, password) if sep else None


def create_app(
    settings: Settings | None = None,
    pricing: PriceResolver | None = None,
    store: PortfolioStore | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Parameters
    ----------
    settings : Settings | None
        Runtime settings, read from the environment if None
    pricing : PriceResolver | None
        Price service, CoinGecko by default
    store : PortfolioStore | None
        Address store used by the summary endpoint

    Returns
    -------
    FastAPI
        Configured application

    """
    settings = settings or Settings.from_env()
    # The endpoint itself must always talk to the aggregator, never to itself
    pricing = pricing or create_pricing(settings.model_copy(update={"price_api_url": None}))
    store = store or create_store(settings)
    price_cache = TTLCache(default_ttl=settings.price_cache_ttl)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        pricing.close()

    app = FastAPI(title="Portfolio Tracker", lifespan=lifespan)

    def cached_prices(symbols: set[str]) -> dict[str, PriceQuote]:
        key = price_cache.make_key("prices", sorted(symbols))
        cached = price_cache.get(key)
        if cached is not None:
            return cached
        prices = pricing.get_prices(symbols)
        price_cache.set(key, prices)
        return prices

    @app.middleware("http")
    async def basic_auth(request: Request, call_next):
        if not settings.auth_required or request.url.path.startswith("/api/"):
            return await call_next(request)

        credentials = _basic_credentials(request.headers.get("authorization"))
        if credentials is not None and settings.basic_auth_user and settings.basic_auth_password:
            user, password = credentials
            if secrets.compare_digest(user, settings.basic_auth_user) and secrets.compare_digest(
                password, settings.basic_auth_password
            ):
                return await call_next(request)

        return Response(
            "Authentication required",
            status_code=401,
            headers={"WWW-Authenticate": 'Basic realm="Portfolio Tracker"'},
        )

    @app.get("/")
    def health() -> dict:
        return {"status": "ok", "demo_mode": settings.is_demo_mode}

    @app.get("/api/prices")
    def get_prices(symbols: str | None = Query(default=None)) -> Response:
        if not symbols:
            return _error("Missing symbols parameter", 400)

        requested = {symbol.strip() for symbol in symbols.split(",") if symbol.strip()}
        if not requested:
            return JSONResponse({})

        try:
            prices = cached_prices(requested)
        except ProviderError as e:
            logger.warning("Price fetch failed: %s", e)
            return _price_error_response(e)
        except Exception:
            logger.exception("Unexpected error fetching prices")
            return _error("Internal server error", 500)

        body = {symbol: quote.model_dump(by_alias=True) for symbol, quote in prices.items()}
        return JSONResponse(body, headers={"Cache-Control": PRICE_CACHE_CONTROL})

    @app.post("/api/auth")
    async def authenticate(request: Request) -> Response:
        try:
            body = await request.json()
        except ValueError:
            return _error("Authentication failed", 500)
        password = body.get("password") if isinstance(body, dict) else None

        if not settings.tracker_password:
            logger.error("CRYPTO_TRACKER_PASSWORD environment variable not set")
            return _error("Authentication not configured", 500)

        if isinstance(password, str) and secrets.compare_digest(password, settings.tracker_password):
            return JSONResponse({"success": True})
        return _error("Invalid password", 401)

    @app.get("/api/summary")
    def get_summary() -> Response:
        addresses = store.list_addresses()
        symbols = symbols_for_addresses(addresses)
        try:
            prices = cached_prices(symbols) if symbols else {}
        except ProviderError as e:
            logger.warning("Price fetch failed: %s", e)
            return _price_error_response(e)

        summary = calculate_portfolio_summary(addresses, prices)
        return JSONResponse(summary.model_dump(mode="json"))

    return app
