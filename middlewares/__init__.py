from middlewares.correlation import CorrelationMiddleware

__all__ = ["CorrelationMiddleware"]
