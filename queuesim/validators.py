import math
from numbers import Real
from typing import Any, Type

from .errors import ConfigError, DistributionSpecError


def require_positive(name: str, value: Any, error: Type[ValueError] = DistributionSpecError) -> float:
    value = require_real(name, value, error)
    if value <= 0:
        raise error(f"{name} must be > 0")
    return value

def require_non_negative(name: str, value: Any, error: Type[ValueError] = DistributionSpecError) -> float:
    value = require_real(name, value, error)
    if value < 0:
        raise error(f"{name} must be >= 0")
    return value

def require_probability(name: str, value: Any, allow_zero: bool = True) -> float:
    value = require_real(name, value)
    low_ok = value >= 0 if allow_zero else value > 0
    if not low_ok or value > 1:
        bound = "[0, 1]" if allow_zero else "(0, 1]"
        raise DistributionSpecError(f"{name} must be a probability in {bound}")
    return value

def require_real(name: str, value: Any, error: Type[ValueError] = DistributionSpecError) -> float:
    if isinstance(value, bool) or not isinstance(value, Real) or not math.isfinite(value):
        raise error(f"{name} must be a finite number")
    return float(value)

def require_int_at_least(name: str, value: Any, minimum: int,
                         error: Type[ValueError] = DistributionSpecError) -> int:
    # integral floats (3.0) arrive from JSON payloads
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise error(f"{name} must be an integer >= {minimum}")
    return value

def require_count(name: str, value: Any, minimum: int = 1) -> int:
    """Run-level counts (tasks, servers) are plain ints, never floats."""
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise ConfigError(f"{name} must be an integer >= {minimum}")
    return value
