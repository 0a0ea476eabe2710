# routers/__init__.py
from . import pdcs

__all__ = ["pdcs"]
