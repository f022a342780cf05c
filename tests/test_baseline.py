"""
Tests for baseline keys and the baseline store.
"""

import pytest

from converge_wait.exceptions import HardInputError
from converge_wait.polling.baseline import BaselineStore, baseline_key, label_pairs


class TestBaselineKey:
    """Test baseline key derivation."""

    def test_family_only(self):
        assert baseline_key("signups_total") == "signups_total"

    def test_labels_are_appended(self):
        assert (
            baseline_key("signups_total", "state", "approved")
            == "signups_total,state,approved"
        )

    def test_label_order_does_not_matter(self):
        """Test that the same series yields the same key whatever the label order."""
        assert baseline_key("spaces", "cluster", "member-1", "tier", "base") == (
            baseline_key("spaces", "tier", "base", "cluster", "member-1")
        )

    def test_distinct_series_have_distinct_keys(self):
        assert baseline_key("spaces", "tier", "base") != baseline_key(
            "spaces", "tier", "advanced"
        )

    def test_odd_label_count_is_rejected(self):
        with pytest.raises(HardInputError, match="pairs of labels and values"):
            baseline_key("signups_total", "state")

    def test_label_pairs(self):
        assert label_pairs(("a", "1", "b", "2")) == [("a", "1"), ("b", "2")]
        assert label_pairs(()) == []


class TestBaselineStore:
    """Test the baseline store."""

    def test_set_and_get(self):
        store = BaselineStore()
        store.set("signups_total", 5.0)

        assert store.get("signups_total") == 5.0
        assert "signups_total" in store
        assert len(store) == 1
        assert list(store) == ["signups_total"]

    def test_strict_store_rejects_uncaptured_key(self):
        """Test that a strict store fails fast on a missing baseline."""
        store = BaselineStore(strict=True)

        with pytest.raises(HardInputError, match="no baseline captured"):
            store.get("signups_total")

    def test_lenient_store_defaults_to_zero(self):
        store = BaselineStore(strict=False)

        assert store.get("signups_total") == 0.0

    def test_copy_is_independent(self):
        """Test that a copy does not share mutable state with the original."""
        original = BaselineStore({"a": 1.0}, strict=False)
        clone = original.copy()

        clone.set("a", 2.0)
        clone.set("b", 3.0)

        assert original.get("a") == 1.0
        assert "b" not in original
        assert clone.strict is False
        assert clone.keys() == ["a", "b"]

    def test_initial_values_are_copied(self):
        values = {"a": 1.0}
        store = BaselineStore(values)
        values["a"] = 9.0

        assert store.get("a") == 1.0
