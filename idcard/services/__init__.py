"""
Services package for the ID card service
"""

from .card_generator import IdCardGenerator, id_card_generator
from .compositor import get_card_specifications
from .object_urls import Blob, ObjectURLRegistry

__all__ = [
    "IdCardGenerator",
    "id_card_generator",
    "get_card_specifications",
    "Blob",
    "ObjectURLRegistry",
]
