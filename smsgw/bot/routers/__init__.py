from aiogram import Router

from smsgw.bot.routers import chat


def setup_routers() -> Router:
    """Root router for the gateway bot; content commands live in ``chat``."""

    root = Router(name="smsgw")
    root.include_router(chat.router)
    return root


__all__ = ["setup_routers"]
