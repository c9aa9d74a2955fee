"""
Unit Tests for the Generation Policy

Tests cover:
1. Defaults and tier ranges
2. Validation failures
3. Dict / JSON loading
"""

import json

import pytest

from policy import GenerationPolicy, PolicyError, TierRange, default_policy


class TestDefaults:
    """Tests for the default policy tables."""

    def test_default_tier_ranges(self):
        policy = default_policy()
        assert policy.range_for("premium") == TierRange(3, 10)
        assert policy.range_for("regular") == TierRange(1, 5)
        assert policy.range_for("new") == TierRange(0, 2)
        assert policy.window_days == 90
        assert policy.redeem_threshold == 100

    def test_unknown_status_uses_new_range(self):
        assert default_policy().range_for("vip") == TierRange(0, 2)

    def test_synthetic_count_uses_tier_minimum_for_zero_entropy(self, zero_rng):
        policy = default_policy()
        assert [policy.synthetic_count(s, zero_rng) for s in ("new", "regular", "premium")] == [0, 1, 3]


class TestValidation:
    """Tests for rejected policies."""

    def test_inverted_tier_ordering_rejected(self):
        """Premium customers must never get fewer synthetic entries than regulars."""
        with pytest.raises(PolicyError, match="premium"):
            GenerationPolicy(tier_counts={
                "new": TierRange(0, 2),
                "regular": TierRange(1, 5),
                "premium": TierRange(0, 4),
            })

    def test_missing_status_rejected(self):
        with pytest.raises(PolicyError, match="missing"):
            GenerationPolicy(tier_counts={"new": TierRange(0, 2)})

    def test_inverted_range_rejected(self):
        with pytest.raises(PolicyError, match="minimum"):
            GenerationPolicy(redeem_points=TierRange(500, 100))

    def test_probabilities_above_one_rejected(self):
        with pytest.raises(PolicyError):
            GenerationPolicy(earn_probability=0.8, redeem_probability=0.3)

    def test_purchase_source_rejected_for_synthetic_earns(self):
        """Purchase earns must trace back to a purchase record."""
        with pytest.raises(PolicyError, match="purchase"):
            GenerationPolicy(earn_sources=("purchase", "promotion"))

    @pytest.mark.parametrize("source", ["admin", "reward"])
    def test_non_earning_sources_rejected_for_synthetic_earns(self, source):
        with pytest.raises(PolicyError, match=source):
            GenerationPolicy(earn_sources=(source,))

    def test_policy_error_is_value_error(self):
        assert issubclass(PolicyError, ValueError)


class TestLoading:
    """Tests for dict and JSON policy loading."""

    def test_partial_override_keeps_defaults(self):
        policy = GenerationPolicy.from_dict({
            "tier_counts": {"premium": [5, 12]},
            "redeem_threshold": 250,
        })
        assert policy.range_for("premium") == TierRange(5, 12)
        assert policy.range_for("regular") == TierRange(1, 5)
        assert policy.redeem_threshold == 250
        assert policy.earn_points == TierRange(10, 100)

    @pytest.mark.parametrize("data", [
        {"tier_counts": {"premium": {"min": 3}}},
        {"tier_counts": {"premium": [3]}},
        {"tier_counts": ["premium", 3, 10]},
        {"tier_counts": {"premium": None}},
        {"window_days": "ninety"},
        {"earn_points": {"minimum": "ten", "maximum": 100}},
        {"earn_sources": 5},
    ])
    def test_malformed_policy_raises_policy_error(self, data):
        """Conversion failures surface as PolicyError, not KeyError or TypeError."""
        with pytest.raises(PolicyError, match="Malformed"):
            GenerationPolicy.from_dict(data)

    def test_malformed_policy_keeps_cause(self):
        with pytest.raises(PolicyError) as excinfo:
            GenerationPolicy.from_dict({"tier_counts": {"premium": {"min": 3}}})
        assert isinstance(excinfo.value.__cause__, KeyError)

    def test_validation_error_passes_through_from_dict(self):
        with pytest.raises(PolicyError, match="earn_probability"):
            GenerationPolicy.from_dict({"earn_probability": 2})

    def test_dict_round_trip(self):
        policy = GenerationPolicy(window_days=30, earn_sources=("referral",))
        assert GenerationPolicy.from_dict(policy.to_dict()) == policy

    def test_from_json_file(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text(json.dumps({"window_days": 45, "adjust_points": {"minimum": -10, "maximum": 10}}))

        policy = GenerationPolicy.from_json_file(path)

        assert policy.window_days == 45
        assert policy.adjust_points == TierRange(-10, 10)

    def test_invalid_json_file(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text("{not json")

        with pytest.raises(PolicyError, match="Cannot load"):
            GenerationPolicy.from_json_file(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(PolicyError):
            GenerationPolicy.from_json_file(tmp_path / "absent.json")

    def test_json_must_be_object(self, tmp_path):
        path = tmp_path / "policy.json"
        path.write_text("[1, 2]")

        with pytest.raises(PolicyError, match="JSON object"):
            GenerationPolicy.from_json_file(path)
