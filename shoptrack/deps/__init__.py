"""Request-scoped FastAPI dependencies shared by the API routers."""

from .pagination import PageParams, page_params

__all__ = ["PageParams", "page_params"]
