"""
Settlement calculator.

Pure functions for the provider/platform split of a query price and the
upload-time bounds on price and dataset size.
"""

from __future__ import annotations

from typing import Iterable

from .errors import DatasetTooLarge, InvalidInputSize, PriceTooLow
from .types import Settlement


DEFAULT_PLATFORM_FEE_PERCENT = 5
MIN_PRICE_WEI = 10**15  # 0.001 ether
MAX_DATA_SIZE = 1000


def split_price(price: int, platform_fee_percent: int = DEFAULT_PLATFORM_FEE_PERCENT) -> Settlement:
    """
    Split a query price between provider and platform.

    The platform share is rounded down, so any remainder goes to the
    provider side of ``price - platform_share`` and the two shares always
    sum to ``price``.

    Example:
        split_price(1000, 5) -> provider_share=950, platform_share=50
    """
    if price < 0:
        raise ValueError("Price must be non-negative")
    if not 0 <= platform_fee_percent <= 100:
        raise ValueError("Platform fee percent must be within 0..100")

    platform_share = price * platform_fee_percent // 100
    return Settlement(
        price=price,
        provider_share=price - platform_share,
        platform_share=platform_share,
        platform_fee_percent=platform_fee_percent,
    )


def validate_upload(
    price: int,
    data_size: int,
    *,
    min_price: int = MIN_PRICE_WEI,
    max_data_size: int = MAX_DATA_SIZE,
) -> None:
    """
    Validate upload bounds before any transaction is built.

    Raises:
        PriceTooLow: If ``price`` is below ``min_price``
        InvalidInputSize: If the dataset is empty
        DatasetTooLarge: If ``data_size`` exceeds ``max_data_size``
    """
    if price < min_price:
        raise PriceTooLow(price, min_price)
    if data_size <= 0:
        raise InvalidInputSize(data_size, max_data_size)
    if data_size > max_data_size:
        raise DatasetTooLarge(data_size, max_data_size)


def expected_provider_revenue(
    prices: Iterable[int],
    platform_fee_percent: int = DEFAULT_PLATFORM_FEE_PERCENT,
) -> int:
    """Sum of provider shares for the given completed query prices."""
    return sum(split_price(price, platform_fee_percent).provider_share for price in prices)
