"""
Tests for the Product Normalizer (src/catalog/normalize.py)

Validates:
- Field mapping from the raw AliExpress record
- Discount priority (explicit field over computed)
- Rating scale conversion (percentage -> 0-5 stars)
- Badge derivation and thresholds
- Malformed numerics degrade instead of raising
- first_seen_at provenance through merge_with_cached()
"""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from src.catalog.normalize import (
    derive_discount_percent,
    derive_tags,
    merge_with_cached,
    normalize_all,
    normalize_product,
    normalize_rating,
    parse_decimal,
    parse_int,
)
from src.catalog.schemas import AliExpressProductRaw


def _raw(**overrides) -> dict:
    record = {
        "product_id": "1005001",
        "product_title": "Ultra Soft Fleece Throw Blanket",
        "product_main_image_url": "https://ae01.alicdn.com/kf/blanket.jpg",
        "promotion_link": "https://s.click.aliexpress.com/e/_blanket",
        "target_sale_price": "24.99",
        "target_original_price": "49.99",
        "discount": "50%",
        "evaluate_rate": "96.0%",
        "lastest_volume": "15420",
        "first_level_category_name": "Home & Garden",
        "second_level_category_name": "Home Textile",
    }
    record.update(overrides)
    return record


# ---------------------------------------------------------------------------
# Field parsers
# ---------------------------------------------------------------------------


class TestParsers:
    """parse_decimal() / parse_int() tolerate feed noise."""

    def test_parse_decimal_plain(self):
        assert parse_decimal("19.99") == Decimal("19.99")

    def test_parse_decimal_with_trailing_text(self):
        assert parse_decimal("19.99 USD") == Decimal("19.99")

    def test_parse_decimal_garbage_returns_none(self):
        assert parse_decimal("abc") is None
        assert parse_decimal("") is None
        assert parse_decimal(None) is None

    def test_parse_int_leading_digits(self):
        assert parse_int("42%") == 42
        assert parse_int("1200+") == 1200

    def test_parse_int_garbage_returns_none(self):
        assert parse_int("lots") is None
        assert parse_int(None) is None


# ---------------------------------------------------------------------------
# Discount
# ---------------------------------------------------------------------------


class TestDiscount:
    """derive_discount_percent() priority rules."""

    def test_explicit_discount_wins_over_prices(self):
        """'42%' is used even though 100 -> 80 would compute 20%."""
        result = derive_discount_percent("42%", Decimal("80"), Decimal("100"))
        assert result == 42

    def test_computed_when_no_explicit(self):
        result = derive_discount_percent(None, Decimal("80"), Decimal("100"))
        assert result == 20

    def test_computed_rounds_half_up(self):
        """(32 - 18.50) / 32 = 42.1875% -> 42; (40 - 25.80) / 40 = 35.5% -> 36."""
        assert derive_discount_percent(None, Decimal("18.50"), Decimal("32.00")) == 42
        assert derive_discount_percent(None, Decimal("25.80"), Decimal("40.00")) == 36

    def test_unparsable_explicit_falls_back_to_prices(self):
        result = derive_discount_percent("n/a", Decimal("80"), Decimal("100"))
        assert result == 20

    def test_absent_when_original_not_higher(self):
        assert derive_discount_percent(None, Decimal("80"), Decimal("80")) is None
        assert derive_discount_percent(None, Decimal("80"), Decimal("60")) is None
        assert derive_discount_percent(None, Decimal("80"), None) is None


# ---------------------------------------------------------------------------
# Rating
# ---------------------------------------------------------------------------


class TestRating:
    """normalize_rating() brings both encodings onto 0-5."""

    def test_percentage_converted_to_stars(self):
        assert normalize_rating("97%") == pytest.approx(4.85)

    def test_star_value_kept(self):
        assert normalize_rating("4.8") == pytest.approx(4.8)

    def test_bare_percentage_without_sign(self):
        assert normalize_rating("90") == pytest.approx(4.5)

    def test_exactly_five_is_stars(self):
        assert normalize_rating("5") == pytest.approx(5.0)

    def test_missing_or_garbage_is_none(self):
        assert normalize_rating(None) is None
        assert normalize_rating("") is None
        assert normalize_rating("unrated") is None


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


class TestTags:
    """derive_tags() thresholds."""

    def test_all_four_badges(self):
        tags = derive_tags(Decimal("15.00"), 55, 4.7, 2000)
        assert tags == ("biggest-savings", "top-rated", "under-20", "popular")

    def test_no_badges(self):
        assert derive_tags(Decimal("25.00"), 10, 4.0, 100) == ()

    def test_boundaries(self):
        """discount >= 50 and rating >= 4.5 qualify; price 20 and 1000 orders do not."""
        tags = derive_tags(Decimal("20.00"), 50, 4.5, 1000)
        assert tags == ("biggest-savings", "top-rated")

    def test_missing_discount_and_rating(self):
        assert derive_tags(Decimal("30.00"), None, None, 0) == ()


# ---------------------------------------------------------------------------
# normalize_product
# ---------------------------------------------------------------------------


class TestNormalizeProduct:
    """normalize_product() end to end on single records."""

    def test_full_record(self, now):
        product = normalize_product(_raw(), now=now)

        assert product.id == "1005001"
        assert product.title == "Ultra Soft Fleece Throw Blanket"
        assert product.image == "https://ae01.alicdn.com/kf/blanket.jpg"
        assert product.url == "https://s.click.aliexpress.com/e/_blanket"
        assert product.price == Decimal("24.99")
        assert product.old_price == Decimal("49.99")
        assert product.discount_percent == 50
        assert product.rating == pytest.approx(4.8)
        assert product.orders == 15420
        assert product.category == "Home Textile"
        assert product.tags == ("biggest-savings", "top-rated", "popular")
        assert product.first_seen_at == now
        assert product.updated_at == now

    def test_accepts_validated_model(self, now):
        raw = AliExpressProductRaw.model_validate(_raw())
        assert normalize_product(raw, now=now).id == "1005001"

    def test_numeric_json_values_are_coerced(self, now):
        product = normalize_product(
            _raw(target_sale_price=12.5, lastest_volume=300), now=now
        )
        assert product.price == Decimal("12.5")
        assert product.orders == 300

    def test_malformed_numerics_degrade(self, now):
        product = normalize_product(
            _raw(
                target_sale_price="n/a",
                target_original_price="",
                discount=None,
                evaluate_rate="??",
                lastest_volume="lots",
            ),
            now=now,
        )

        assert product.price == Decimal("0")
        assert product.old_price is None
        assert product.discount_percent is None
        assert product.rating is None
        assert product.orders == 0
        assert product.tags == ("under-20",)

    def test_negative_price_clamped_to_zero(self, now):
        product = normalize_product(_raw(target_sale_price="-5.00"), now=now)
        assert product.price == Decimal("0")

    def test_zero_original_price_is_absent(self, now):
        product = normalize_product(
            _raw(target_original_price="0", discount=None), now=now
        )
        assert product.old_price is None
        assert product.discount_percent is None

    def test_category_falls_back_to_first_level(self, now):
        product = normalize_product(_raw(second_level_category_name=None), now=now)
        assert product.category == "Home & Garden"

    def test_category_default_label(self, now):
        product = normalize_product(
            _raw(second_level_category_name="", first_level_category_name=None),
            now=now,
        )
        assert product.category == "General"

    def test_missing_product_id_raises(self, now):
        raw = _raw()
        del raw["product_id"]
        with pytest.raises(ValidationError):
            normalize_product(raw, now=now)


# ---------------------------------------------------------------------------
# normalize_all
# ---------------------------------------------------------------------------


class TestNormalizeAll:
    """normalize_all() batches and skips unusable records."""

    def test_fixture_page(self, load_mock_aliexpress_query, now):
        envelope = load_mock_aliexpress_query["aliexpress_affiliate_product_query_response"]
        raws = envelope["resp_result"]["result"]["products"]["product"]

        products = normalize_all(raws, now=now)

        assert [p.id for p in products] == ["1005001", "1005002", "1005003"]
        candle = products[1]
        assert candle.discount_percent == 42
        assert candle.rating == pytest.approx(4.6)
        assert candle.tags == ("top-rated", "under-20")
        wrist_rest = products[2]
        assert wrist_rest.price == Decimal("0")
        assert wrist_rest.category == "General"

    def test_shared_timestamp(self, now):
        products = normalize_all([_raw(product_id="a"), _raw(product_id="b")], now=now)
        assert {p.first_seen_at for p in products} == {now}

    def test_skips_record_without_id(self, now):
        broken = _raw()
        del broken["product_id"]

        products = normalize_all([_raw(product_id="ok"), broken], now=now)

        assert [p.id for p in products] == ["ok"]

    def test_null_display_fields_keep_record(self, now):
        raw = {
            "product_id": "1",
            "product_title": None,
            "product_main_image_url": None,
            "promotion_link": None,
            "target_sale_price": "9.99",
        }

        products = normalize_all([raw], now=now)

        assert len(products) == 1
        assert products[0].id == "1"
        assert products[0].title == ""
        assert products[0].image == ""
        assert products[0].url == ""
        assert products[0].price == Decimal("9.99")

    def test_empty_batch(self, now):
        assert normalize_all([], now=now) == []


# ---------------------------------------------------------------------------
# merge_with_cached
# ---------------------------------------------------------------------------


class TestMergeWithCached:
    """first_seen_at survives re-normalization."""

    def test_first_sighting_returns_new_product(self, now):
        product = normalize_product(_raw(), now=now)
        assert merge_with_cached(product, None, now=now) is product

    def test_cached_first_seen_preserved(self, now):
        seen_earlier = now - timedelta(days=5)
        cached = normalize_product(_raw(), now=seen_earlier)
        fresh = normalize_product(_raw(target_sale_price="19.99"), now=now)

        merged = merge_with_cached(fresh, cached, now=now)

        assert merged.first_seen_at == seen_earlier
        assert merged.updated_at == now
        assert merged.price == Decimal("19.99")

    def test_repeated_refreshes_keep_original_sighting(self, now):
        seen_first = now - timedelta(days=3)
        current = normalize_product(_raw(), now=seen_first)

        for hours in (6, 12, 18):
            refresh_time = seen_first + timedelta(hours=hours)
            fresh = normalize_product(_raw(), now=refresh_time)
            current = merge_with_cached(fresh, current, now=refresh_time)

        assert current.first_seen_at == seen_first
        assert current.updated_at == seen_first + timedelta(hours=18)

    def test_cached_without_first_seen_keeps_new_value(self, now):
        fresh = normalize_product(_raw(), now=now)
        legacy = fresh.model_copy(update={"first_seen_at": None})

        merged = merge_with_cached(fresh, legacy, now=now)

        assert merged.first_seen_at == now

    def test_merge_does_not_mutate_inputs(self, now):
        cached = normalize_product(_raw(), now=now - timedelta(days=1))
        fresh = normalize_product(_raw(), now=now)

        merge_with_cached(fresh, cached, now=now)

        assert fresh.first_seen_at == now
        assert cached.first_seen_at == now - timedelta(days=1)
