from smsgw.bot.middlewares.rate_limit import QuotaMiddleware

__all__ = ["QuotaMiddleware"]
