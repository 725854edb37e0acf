from .cache import ImageCache

__all__ = ["ImageCache"]
