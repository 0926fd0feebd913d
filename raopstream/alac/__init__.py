"""
Pure python encoder for uncompressed ALAC frames.
"""
from .alacencoder import ALACEncoder
from .bitwriter import BitWriter

__all__ = ["ALACEncoder", "BitWriter"]
