"""
Tests for amount parsing and whale classification.

Tests cover:
- Lenient amount parsing of strings, numbers and junk
- Inclusive threshold boundary
- Case-insensitive token lookup with default fallback
- Threshold changes applying to the next classification
"""

from decimal import Decimal

import pytest

from qx_watcher.detection import WhaleClassifier, parse_amount

from .helpers import WALLET_A, WALLET_B, make_event


class TestParseAmount:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("15000000", 15_000_000),
            ("1,234,567", 1_234_567),
            ("1_000", 1_000),
            ("1 000", 1_000),
            ("15.9", 15),
            (2500, 2500),
            (1.5e3, 1500),
            (Decimal("12.7"), 12),
            (b"42", 42),
        ],
    )
    def test_parses_amounts(self, value, expected):
        assert parse_amount(value) == expected

    @pytest.mark.parametrize(
        "value",
        [None, "", "abc", "-5", -5, -1.5, float("nan"), float("inf"), True, [1], {}],
    )
    def test_unparseable_is_zero(self, value):
        assert parse_amount(value) == 0

    def test_large_values_keep_precision(self):
        assert parse_amount("123456789012345678901234567890") == 123456789012345678901234567890


class TestWhaleClassifier:
    def test_threshold_is_inclusive(self, classifier):
        threshold = classifier.threshold_for("QUBIC")
        assert classifier.is_whale("QUBIC", threshold)
        assert not classifier.is_whale("QUBIC", threshold - 1)

    def test_token_lookup_is_case_insensitive(self, classifier):
        assert classifier.threshold_for("qmine") == 500_000
        assert classifier.is_whale("qmine", 500_000)

    def test_unknown_token_uses_default(self, settings):
        classifier = WhaleClassifier(settings, default_threshold=777)
        assert classifier.threshold_for("NEWTOKEN") == 777
        assert classifier.threshold_for(None) == 777
        assert classifier.is_whale("NEWTOKEN", 777)

    def test_threshold_change_applies_immediately(self, settings, classifier):
        assert not classifier.is_whale("CFB", 10_000)

        settings.set_whale_threshold("cfb", 10_000)

        assert classifier.threshold_for("CFB") == 10_000
        assert classifier.is_whale("CFB", 10_000)

    def test_event_classification_uses_token_and_amount(self, classifier):
        assert classifier.is_whale_event(make_event(amount="15000000"))
        assert not classifier.is_whale_event(make_event(amount="999,999"))
        # No asset name means QUBIC
        assert classifier.is_whale_event(make_event(asset_name=None, amount="1000000"))
        assert classifier.is_whale_event(make_event(asset_name="QXMR", amount="10000"))

    def test_whale_wallets_among(self, classifier):
        events = [
            make_event(tx_id="1", source_id=WALLET_A, amount="2000000"),
            make_event(tx_id="2", source_id=WALLET_B, amount="10"),
            make_event(tx_id="3", source_id=WALLET_A, amount="5"),
        ]
        assert classifier.whale_wallets_among(events) == {WALLET_A}
