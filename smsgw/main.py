"""Application entrypoint."""

from __future__ import annotations

import asyncio

import httpx
import uvicorn
from aiogram import Bot, Dispatcher
from aiogram.client.session.aiohttp import AiohttpSession

from smsgw.api import create_app
from smsgw.bot.middlewares import QuotaMiddleware
from smsgw.bot.routers import setup_routers
from smsgw.config import GatewaySettings, get_settings
from smsgw.container import Container, build_container
from smsgw.db.session import Database
from smsgw.logging import configure_logging, logger
from smsgw.services.quota import run_purge_loop


def build_dispatcher(container: Container) -> Dispatcher:
    dp = Dispatcher()
    dp.include_router(setup_routers())
    dp.message.middleware(QuotaMiddleware(container))
    return dp


def build_bot(settings: GatewaySettings) -> Bot:
    telegram = settings.telegram
    session = AiohttpSession(proxy=telegram.proxy) if telegram.proxy else None
    return Bot(token=telegram.token.get_secret_value(), session=session)


async def run_http(container: Container) -> None:
    http = container.settings.http
    config = uvicorn.Config(
        create_app(container),
        host=http.host,
        port=http.port,
        log_config=None,
    )
    server = uvicorn.Server(config)
    logger.info("http_starting", host=http.host, port=http.port)
    await server.serve()


async def run_bot(container: Container) -> None:
    bot = build_bot(container.settings)
    dp = build_dispatcher(container)
    logger.info("bot_starting", environment=container.settings.environment)
    try:
        await dp.start_polling(bot, container=container)
    finally:
        await bot.session.close()


async def main() -> None:
    configure_logging()
    settings = get_settings()

    database = Database(settings=settings)
    await database.create_all()

    async with httpx.AsyncClient(follow_redirects=True) as http_client:
        container = build_container(settings, database, http_client)
        tasks = [
            run_http(container),
            run_purge_loop(container.tracker, settings.quota.purge_interval_seconds),
        ]
        if settings.telegram.token is not None:
            tasks.append(run_bot(container))
        else:
            logger.info("bot_disabled", reason="no telegram token configured")

        try:
            await asyncio.gather(*tasks)
        finally:
            await database.dispose()


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
