"""Dev server implementing the chat REST contract."""

from .app import create_dev_app
from .storage import DevStorage, IDevStorage

__all__ = ["create_dev_app", "DevStorage", "IDevStorage"]
