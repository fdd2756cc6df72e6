"""
Settlement and upload-bound tests.
"""

import pytest

from confidential_marketplace.core.errors import DatasetTooLarge, InvalidInputSize, PriceTooLow
from confidential_marketplace.core.settlement import (
    MIN_PRICE_WEI,
    expected_provider_revenue,
    split_price,
    validate_upload,
)


class TestSplitPrice:
    """Tests for the provider/platform split"""

    def test_default_fee(self):
        """Test price 1000 at 5% splits 950 / 50"""
        settlement = split_price(1000)
        assert settlement.provider_share == 950
        assert settlement.platform_share == 50
        assert settlement.platform_fee_percent == 5

    @pytest.mark.parametrize("price", [0, 1, 19, 20, 999, 10**15, 10**18 + 7])
    def test_shares_sum_to_price(self, price):
        """Test both shares always add up to the price"""
        settlement = split_price(price, 5)
        assert settlement.provider_share + settlement.platform_share == price
        assert settlement.platform_share == price * 5 // 100

    def test_remainder_goes_to_provider(self):
        """Test the rounded-down platform share leaves the remainder with the provider"""
        settlement = split_price(19, 5)
        assert settlement.platform_share == 0
        assert settlement.provider_share == 19

    def test_zero_and_full_fee(self):
        assert split_price(500, 0).provider_share == 500
        assert split_price(500, 100).platform_share == 500

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            split_price(-1)
        with pytest.raises(ValueError):
            split_price(100, 101)

    def test_expected_provider_revenue(self):
        """Test revenue is the sum of provider shares"""
        assert expected_provider_revenue([1000, 1000, 19]) == 950 + 950 + 19


class TestValidateUpload:
    """Tests for upload bounds"""

    def test_valid_upload(self):
        validate_upload(MIN_PRICE_WEI, 1000)

    def test_price_too_low(self):
        with pytest.raises(PriceTooLow) as exc_info:
            validate_upload(MIN_PRICE_WEI - 1, 10)
        assert exc_info.value.min_price == MIN_PRICE_WEI

    def test_dataset_too_large(self):
        with pytest.raises(DatasetTooLarge):
            validate_upload(MIN_PRICE_WEI, 1001)

    def test_empty_dataset(self):
        with pytest.raises(InvalidInputSize):
            validate_upload(MIN_PRICE_WEI, 0)

    def test_custom_limits(self):
        with pytest.raises(DatasetTooLarge):
            validate_upload(10, 11, min_price=1, max_data_size=10)
