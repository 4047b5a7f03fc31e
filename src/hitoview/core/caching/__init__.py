from .image_data_cache import ImageDataCache

__all__ = ["ImageDataCache"]
