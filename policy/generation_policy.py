from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, Union
import json


STATUS_ORDER = ("new", "regular", "premium")

# purchase-sourced earns must trace back to a real purchase record
SYNTHETIC_EARN_SOURCES = ("promotion", "referral")


class PolicyError(ValueError):
    pass


class RandomSource(Protocol):
    def randint(self, a: int, b: int) -> int: ...

    def random(self) -> float: ...


@dataclass(frozen=True)
class TierRange:
    minimum: int
    maximum: int

    def draw(self, rng: RandomSource) -> int:
        return rng.randint(self.minimum, self.maximum)

    def validate(self, name: str) -> None:
        if self.minimum > self.maximum:
            raise PolicyError(f"{name}: minimum {self.minimum} exceeds maximum {self.maximum}")

    def to_dict(self) -> dict:
        return {"minimum": self.minimum, "maximum": self.maximum}

    @classmethod
    def from_dict(cls, data: Union[dict, list, tuple]) -> "TierRange":
        if isinstance(data, (list, tuple)):
            return cls(minimum=int(data[0]), maximum=int(data[1]))
        return cls(minimum=int(data["minimum"]), maximum=int(data["maximum"]))


def _default_tier_counts() -> dict[str, TierRange]:
    return {
        "new": TierRange(0, 2),
        "regular": TierRange(1, 5),
        "premium": TierRange(3, 10),
    }


@dataclass
class GenerationPolicy:
    """Knobs for synthetic loyalty activity layered on top of purchase earnings.

    Statuses missing from ``tier_counts`` fall back to the ``new`` range.
    """

    tier_counts: dict[str, TierRange] = field(default_factory=_default_tier_counts)
    window_days: int = 90
    earn_probability: float = 0.6
    redeem_probability: float = 0.3
    redeem_threshold: int = 100
    earn_points: TierRange = TierRange(10, 100)
    redeem_points: TierRange = TierRange(100, 500)
    adjust_points: TierRange = TierRange(-50, 50)
    expire_points: TierRange = TierRange(10, 100)
    earn_sources: tuple[str, ...] = ("promotion", "referral")

    def __post_init__(self):
        self.validate()

    def range_for(self, status: str) -> TierRange:
        return self.tier_counts.get(status, self.tier_counts["new"])

    def synthetic_count(self, status: str, rng: RandomSource) -> int:
        return self.range_for(status).draw(rng)

    def validate(self) -> None:
        missing = [s for s in STATUS_ORDER if s not in self.tier_counts]
        if missing:
            raise PolicyError(f"tier_counts missing statuses: {', '.join(missing)}")
        for status, tier in self.tier_counts.items():
            tier.validate(f"tier_counts.{status}")
            if tier.minimum < 0:
                raise PolicyError(f"tier_counts.{status}: counts cannot be negative")

        # premium >= regular >= new on both bounds
        for lower, higher in zip(STATUS_ORDER, STATUS_ORDER[1:]):
            lo, hi = self.tier_counts[lower], self.tier_counts[higher]
            if hi.minimum < lo.minimum or hi.maximum < lo.maximum:
                raise PolicyError(f"tier_counts.{higher} must not be below tier_counts.{lower}")

        for name in ("earn_points", "redeem_points", "adjust_points", "expire_points"):
            getattr(self, name).validate(name)
        for name in ("earn_points", "redeem_points", "expire_points"):
            if getattr(self, name).minimum < 0:
                raise PolicyError(f"{name}: magnitudes cannot be negative")

        for name in ("earn_probability", "redeem_probability"):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise PolicyError(f"{name} must be within [0, 1], got {value}")
        if self.earn_probability + self.redeem_probability > 1.0:
            raise PolicyError("earn_probability + redeem_probability must not exceed 1")

        if self.window_days < 0:
            raise PolicyError("window_days cannot be negative")
        if self.redeem_threshold < 0:
            raise PolicyError("redeem_threshold cannot be negative")
        if not self.earn_sources:
            raise PolicyError("earn_sources cannot be empty")
        unknown = [s for s in self.earn_sources if s not in SYNTHETIC_EARN_SOURCES]
        if unknown:
            raise PolicyError(f"earn_sources not allowed for synthetic earns: {', '.join(unknown)}")

    def to_dict(self) -> dict:
        return {
            "tier_counts": {status: tier.to_dict() for status, tier in self.tier_counts.items()},
            "window_days": self.window_days,
            "earn_probability": self.earn_probability,
            "redeem_probability": self.redeem_probability,
            "redeem_threshold": self.redeem_threshold,
            "earn_points": self.earn_points.to_dict(),
            "redeem_points": self.redeem_points.to_dict(),
            "adjust_points": self.adjust_points.to_dict(),
            "expire_points": self.expire_points.to_dict(),
            "earn_sources": list(self.earn_sources),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_dict(cls, data: dict) -> "GenerationPolicy":
        defaults = cls()

        def _range(name: str) -> TierRange:
            return TierRange.from_dict(data[name]) if name in data else getattr(defaults, name)

        try:
            tier_counts = dict(defaults.tier_counts)
            tier_counts.update({status: TierRange.from_dict(t) for status, t in data.get("tier_counts", {}).items()})
            fields = {
                "window_days": int(data.get("window_days", defaults.window_days)),
                "earn_probability": float(data.get("earn_probability", defaults.earn_probability)),
                "redeem_probability": float(data.get("redeem_probability", defaults.redeem_probability)),
                "redeem_threshold": int(data.get("redeem_threshold", defaults.redeem_threshold)),
                "earn_points": _range("earn_points"),
                "redeem_points": _range("redeem_points"),
                "adjust_points": _range("adjust_points"),
                "expire_points": _range("expire_points"),
                "earn_sources": tuple(data.get("earn_sources", defaults.earn_sources)),
            }
        except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
            raise PolicyError(f"Malformed generation policy: {e!r}") from e
        return cls(tier_counts=tier_counts, **fields)

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> "GenerationPolicy":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise PolicyError(f"Cannot load generation policy from {path}: {e}") from e
        if not isinstance(data, dict):
            raise PolicyError(f"Generation policy in {path} must be a JSON object")
        return cls.from_dict(data)


def default_policy() -> GenerationPolicy:
    return GenerationPolicy()
