from ordering.api.routes import order_router, register_error_handlers

__all__ = ["order_router", "register_error_handlers"]
