"""FastAPI application exposing content endpoints and the SMS webhook.

Routes:

- ``GET /uri2md``, ``/twitter``, ``/ddg``, ``/wiki``, ``/weather``: fetch content
  directly; all but weather accept ``b64=true`` for a base64 body.
- ``POST /api/inbound``: provider push of inbound SMS, answered through the
  configured SMS provider.
- ``POST /api/test`` and ``/api/test/subscribe``: non-production helpers that
  return the would-be provider request and seed subscriptions.
- ``POST /webhook/buymeacoffee`` and ``/webhook/paypal``: payment callbacks
  that create subscriptions and change their status.
- ``GET /``, ``/index.txt``, ``/index.html``: usage text; the OpenAPI document
  is served at ``/api/docs`` with its UI at ``/api/docs/ui``.
"""

from __future__ import annotations

import html
from collections.abc import Awaitable, Callable
from typing import Annotated, Any

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from pydantic import ValidationError

from smsgw.container import Container
from smsgw.domain.models import BuyMeACoffeeEvent, InboundSMS, PayPalIPN, SubscribeRequest
from smsgw.logging import logger
from smsgw.services.exceptions import (
    FetchFailed,
    QuotaStoreUnavailable,
    SubscriptionError,
    SubscriptionNotFound,
    WebhookRejected,
)
from smsgw.utils.datetime import utc_now
from smsgw.utils.segments import encode_payload


def get_container(request: Request) -> Container:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise HTTPException(status.HTTP_500_INTERNAL_SERVER_ERROR, "Service not initialized")
    return container


ContainerDep = Annotated[Container, Depends(get_container)]


def require_non_production(container: ContainerDep) -> None:
    if container.settings.is_production:
        raise HTTPException(
            status.HTTP_403_FORBIDDEN,
            "Test endpoint is not available in production environment",
        )


async def _content_response(
    what: str, fetch: Callable[[], Awaitable[str]], b64: bool
) -> PlainTextResponse:
    try:
        text = await fetch()
    except FetchFailed as exc:
        logger.warning("content_endpoint_failed", source=what, error=str(exc))
        return PlainTextResponse(
            f"Error fetching {what}: {exc}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    return PlainTextResponse(encode_payload(text) if b64 else text)


def _required(value: str | None, name: str) -> str:
    if not value or not value.strip():
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Missing {name} parameter")
    return value.strip()


content_router = APIRouter()


@content_router.get("/uri2md", response_class=PlainTextResponse)
async def uri_to_markdown(
    container: ContainerDep, uri: str | None = None, b64: bool = False
) -> PlainTextResponse:
    uri = _required(uri, "uri")
    return await _content_response(
        "markdown", lambda: container.fetchers.markdown.fetch(uri), b64
    )


@content_router.get("/twitter", response_class=PlainTextResponse)
async def twitter(
    container: ContainerDep, user: str | None = None, b64: bool = False
) -> PlainTextResponse:
    user = _required(user, "user")
    count = container.settings.content.http_tweet_count
    return await _content_response(
        "tweets", lambda: container.fetchers.tweets.fetch(user, count), b64
    )


@content_router.get("/ddg", response_class=PlainTextResponse)
async def duckduckgo(
    container: ContainerDep, q: str | None = None, b64: bool = False
) -> PlainTextResponse:
    q = _required(q, "q")
    return await _content_response(
        "search results", lambda: container.fetchers.search.search(q), b64
    )


@content_router.get("/wiki", response_class=PlainTextResponse)
async def wikipedia(
    container: ContainerDep,
    q: str | None = None,
    lang: str = "en",
    b64: bool = False,
) -> PlainTextResponse:
    q = _required(q, "q")
    return await _content_response(
        "Wikipedia summary",
        lambda: container.fetchers.wikipedia.summary(q, lang or "en"),
        b64,
    )


@content_router.get("/weather", response_class=PlainTextResponse)
async def weather(container: ContainerDep, loc: str | None = None) -> PlainTextResponse:
    loc = _required(loc, "loc")
    return await _content_response(
        "weather forecast", lambda: container.fetchers.weather.forecast(loc), False
    )


sms_router = APIRouter(prefix="/api")


@sms_router.post("/inbound", status_code=status.HTTP_204_NO_CONTENT)
async def inbound(payload: list[InboundSMS], container: ContainerDep) -> Response:
    logger.info("inbound_received", items=len(payload))
    await container.gateway.process_batch(payload, deliver=True)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@sms_router.post("/test", dependencies=[Depends(require_non_production)])
async def inbound_test(payload: list[InboundSMS], container: ContainerDep) -> dict[str, Any]:
    logger.info("inbound_test_received", items=len(payload))
    messages = await container.gateway.process_batch(payload, deliver=False)
    return container.sms.build_request(messages)


@sms_router.post(
    "/test/subscribe",
    response_class=PlainTextResponse,
    dependencies=[Depends(require_non_production)],
)
async def test_subscribe(body: SubscribeRequest, container: ContainerDep) -> PlainTextResponse:
    now = utc_now()
    await container.subscriptions.save_subscription(
        f"test_{int(now.timestamp())}",
        body.email,
        "active",
        container.subscriptions.default_expiry(now),
    )
    return PlainTextResponse("Subscription added successfully")


webhook_router = APIRouter(prefix="/webhook")


async def _verified_body(source: str, request: Request, container: Container) -> bytes:
    body = await request.body()
    try:
        await container.webhooks.verifier.verify(source, body, request.headers)
    except WebhookRejected as exc:
        logger.warning("webhook_rejected", source=source, error=str(exc))
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Invalid {source} webhook") from exc
    return body


async def _apply_webhook(source: str, change: Awaitable[str | None]) -> None:
    try:
        await change
    except SubscriptionNotFound as exc:
        raise HTTPException(status.HTTP_404_NOT_FOUND, str(exc)) from exc
    except (SubscriptionError, QuotaStoreUnavailable) as exc:
        logger.error("webhook_failed", source=source, error=str(exc))
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            f"Error updating subscription: {exc}",
        ) from exc


@webhook_router.post("/buymeacoffee", response_class=PlainTextResponse)
async def buymeacoffee(request: Request, container: ContainerDep) -> PlainTextResponse:
    body = await _verified_body("buymeacoffee", request, container)
    try:
        event = BuyMeACoffeeEvent.model_validate_json(body)
    except ValidationError as exc:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Invalid webhook payload") from exc

    await _apply_webhook("buymeacoffee", container.webhooks.handle_buymeacoffee(event))
    return PlainTextResponse("OK")


@webhook_router.post("/paypal", response_class=PlainTextResponse)
async def paypal(request: Request, container: ContainerDep) -> PlainTextResponse:
    await _verified_body("paypal", request, container)
    form = await request.form()
    ipn = PayPalIPN.model_validate({key: str(value) for key, value in form.items()})

    await _apply_webhook("paypal", container.webhooks.handle_paypal(ipn))
    return PlainTextResponse("OK")


ROOT_INFO = """SMS Gateway

Send an SMS with one of these commands:

  <url>                   page as markdown
  twitter user <name>     latest tweets of a user
  websearch <query>       DuckDuckGo search results
  wiki <lang> <query>     Wikipedia summary
  weather <location>      current weather
  subscribe <email>       link this number to a subscription

Long replies arrive as GW<n>|<base64> segments; decode each payload and
join them in order.

HTTP:

  GET  /uri2md?uri=<url>[&b64=true]
  GET  /twitter?user=<name>[&b64=true]
  GET  /ddg?q=<query>[&b64=true]
  GET  /wiki?q=<query>[&lang=en][&b64=true]
  GET  /weather?loc=<location>
  POST /api/inbound
  GET  /api/docs        OpenAPI document
  GET  /api/docs/ui     interactive documentation
"""

BROWSER_MARKERS = ("firefox", "chrome", "safari", "edge", "opera")

doc_router = APIRouter()


def _root_html() -> HTMLResponse:
    return HTMLResponse(
        "<!DOCTYPE html><html><head><title>SMS Gateway</title></head>"
        f"<body><pre>{html.escape(ROOT_INFO)}</pre></body></html>"
    )


@doc_router.get("/", include_in_schema=False)
async def root(request: Request) -> Response:
    agent = request.headers.get("user-agent", "").lower()
    if any(marker in agent for marker in BROWSER_MARKERS):
        return _root_html()
    return PlainTextResponse(ROOT_INFO)


@doc_router.get("/index.txt", include_in_schema=False)
async def index_text() -> PlainTextResponse:
    return PlainTextResponse(ROOT_INFO)


@doc_router.get("/index.html", include_in_schema=False)
@doc_router.get("/index.htm", include_in_schema=False)
async def index_html() -> HTMLResponse:
    return _root_html()


def create_app(container: Container) -> FastAPI:
    app = FastAPI(
        title="SMS Gateway",
        docs_url="/api/docs/ui",
        openapi_url="/api/docs",
        redoc_url=None,
    )
    app.state.container = container
    app.include_router(doc_router)
    app.include_router(content_router)
    app.include_router(sms_router)
    app.include_router(webhook_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok", "environment": container.settings.environment}

    return app


__all__ = ["create_app", "get_container"]
