"""
Schemas package for the ID card service
"""

from .id_card import (
    Gender,
    FrontCardParams,
    BackCardParams,
    CombinedCardParams,
    CardPreviewResponse,
)

__all__ = [
    "Gender",
    "FrontCardParams",
    "BackCardParams",
    "CombinedCardParams",
    "CardPreviewResponse",
]
