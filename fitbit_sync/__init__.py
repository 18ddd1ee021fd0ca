__all__ = ["DAILY_HEADER", "__version__"]

__version__ = "0.1.0"

from .models import HEADERS as DAILY_HEADER  # noqa: E402
