from .conversion import ConversionService

__all__ = ["ConversionService"]
