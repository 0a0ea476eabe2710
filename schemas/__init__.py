# schemas/__init__.py
from .pdc import (
     PDCCreate,
     PDCBulkCreate,
     PDCResponse,
     PDCListResponse,
)

__all__ = [
     "PDCCreate",
     "PDCBulkCreate",
     "PDCResponse",
     "PDCListResponse",
]
