import bisect
import math
import sys
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Mapping, Sequence, Tuple, Type

import numpy as np

from .errors import ConfigError, DistributionSpecError, SamplerDomainError
from .models import DistributionSpec
from .validators import (
    require_int_at_least,
    require_non_negative,
    require_positive,
    require_probability,
    require_real,
)

# private stream for the one-shot validation draw; the run's stream is never touched
VALIDATION_SEED = 0

# numpy's hypergeometric sampler rejects larger populations
MAX_HYPERGEOMETRIC_POPULATION = 10 ** 9

# log of the largest finite float
MAX_LOG = math.log(sys.float_info.max)

# largest -log(1-U) for U from Generator.random(), which never exceeds 1 - 2**-53
MAX_STANDARD_EXP = 53 * math.log(2.0)

# smaller F denominators let the chi-square draw underflow to zero
MIN_F_DFD = 0.5


def _require_finite_support(family: str, log_bound: float) -> None:
    """Reject parameters whose largest reachable sample overflows a float."""
    if not log_bound < MAX_LOG:
        raise DistributionSpecError(f"{family} parameters allow samples beyond the float range")


class Distribution:
    """
    One member of the closed set of families. Subclasses are frozen
    dataclasses holding already-validated parameters.

    draw(rng) turns primitives of a numpy Generator into one sample:
    inverse CDF on U(0,1) where it exists in closed form, otherwise an
    algebraic transform of a standard primitive (scaled standard gamma,
    exponentiated standard normal, ...).
    """

    family: ClassVar[str]
    param_names: ClassVar[Tuple[str, ...]]

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "Distribution":
        raise NotImplementedError

    def draw(self, rng: np.random.Generator) -> float:
        raise NotImplementedError

    def mean(self) -> float:
        raise NotImplementedError

    def variance(self) -> float:
        raise NotImplementedError


# ---------- Continuous ----------
@dataclass(frozen=True)
class Exponential(Distribution):
    family: ClassVar[str] = "Exponential"
    param_names: ClassVar[Tuple[str, ...]] = ("rate",)
    rate: float

    @classmethod
    def from_params(cls, params):
        rate = require_positive("rate", params["rate"])
        _require_finite_support(cls.family, math.log(MAX_STANDARD_EXP) - math.log(rate))
        return cls(rate=rate)

    def draw(self, rng):
        # mean = 1/rate
        return -math.log(1.0 - rng.random()) / self.rate

    def mean(self):
        return 1.0 / self.rate

    def variance(self):
        return 1.0 / (self.rate * self.rate)


@dataclass(frozen=True)
class Uniform(Distribution):
    family: ClassVar[str] = "Uniform"
    param_names: ClassVar[Tuple[str, ...]] = ("min", "max")
    low: float
    high: float

    @classmethod
    def from_params(cls, params):
        a = require_non_negative("min", params["min"])
        b = require_non_negative("max", params["max"])
        if b < a:
            raise DistributionSpecError("Uniform requires 0 <= min <= max")
        return cls(low=a, high=b)

    def draw(self, rng):
        return self.low + (self.high - self.low) * rng.random()

    def mean(self):
        return (self.low + self.high) / 2.0

    def variance(self):
        return ((self.high - self.low) ** 2) / 12.0


@dataclass(frozen=True)
class Triangular(Distribution):
    family: ClassVar[str] = "Triangular"
    param_names: ClassVar[Tuple[str, ...]] = ("min", "mode", "max")
    low: float
    mode: float
    high: float

    @classmethod
    def from_params(cls, params):
        a = require_non_negative("min", params["min"])
        c = require_non_negative("mode", params["mode"])
        b = require_non_negative("max", params["max"])
        if not (a <= c <= b) or a == b:
            raise DistributionSpecError("Triangular requires 0 <= min <= mode <= max and min < max")
        return cls(low=a, mode=c, high=b)

    def draw(self, rng):
        u = rng.random()
        a, c, b = self.low, self.mode, self.high
        if u < (c - a) / (b - a):
            return a + math.sqrt(u * (b - a) * (c - a))
        return b - math.sqrt((1.0 - u) * (b - a) * (b - c))

    def mean(self):
        return (self.low + self.mode + self.high) / 3.0

    def variance(self):
        a, c, b = self.low, self.mode, self.high
        return (a * a + b * b + c * c - a * b - a * c - b * c) / 18.0


@dataclass(frozen=True)
class Gamma(Distribution):
    family: ClassVar[str] = "Gamma"
    param_names: ClassVar[Tuple[str, ...]] = ("shape", "scale")
    shape: float
    scale: float

    @classmethod
    def from_params(cls, params):
        return cls(
            shape=require_positive("shape", params["shape"]),
            scale=require_positive("scale", params["scale"]),
        )

    def draw(self, rng):
        return self.scale * rng.standard_gamma(self.shape)

    def mean(self):
        return self.shape * self.scale

    def variance(self):
        return self.shape * (self.scale ** 2)


@dataclass(frozen=True)
class Erlang(Distribution):
    family: ClassVar[str] = "Erlang"
    param_names: ClassVar[Tuple[str, ...]] = ("k", "rate")
    k: int
    rate: float

    @classmethod
    def from_params(cls, params):
        return cls(
            k=require_int_at_least("k", params["k"], 1),
            rate=require_positive("rate", params["rate"]),
        )

    def draw(self, rng):
        return rng.standard_gamma(self.k) / self.rate

    def mean(self):
        return self.k / self.rate

    def variance(self):
        return self.k / (self.rate * self.rate)


@dataclass(frozen=True)
class ChiSquare(Distribution):
    family: ClassVar[str] = "ChiSquare"
    param_names: ClassVar[Tuple[str, ...]] = ("df",)
    df: float

    @classmethod
    def from_params(cls, params):
        return cls(df=require_positive("df", params["df"]))

    def draw(self, rng):
        return 2.0 * rng.standard_gamma(self.df / 2.0)

    def mean(self):
        return self.df

    def variance(self):
        return 2.0 * self.df


@dataclass(frozen=True)
class F(Distribution):
    family: ClassVar[str] = "F"
    param_names: ClassVar[Tuple[str, ...]] = ("dfn", "dfd")
    dfn: float
    dfd: float

    @classmethod
    def from_params(cls, params):
        dfn = require_positive("dfn", params["dfn"])
        dfd = require_positive("dfd", params["dfd"])
        if dfd < MIN_F_DFD:
            raise DistributionSpecError(f"dfd must be >= {MIN_F_DFD}")
        return cls(dfn=dfn, dfd=dfd)

    def draw(self, rng):
        num = 2.0 * rng.standard_gamma(self.dfn / 2.0) / self.dfn
        den = 2.0 * rng.standard_gamma(self.dfd / 2.0) / self.dfd
        return num / den

    def mean(self):
        return self.dfd / (self.dfd - 2.0) if self.dfd > 2 else math.inf

    def variance(self):
        d1, d2 = self.dfn, self.dfd
        if d2 <= 4:
            return math.inf
        return 2.0 * d2 * d2 * (d1 + d2 - 2.0) / (d1 * (d2 - 2.0) ** 2 * (d2 - 4.0))


@dataclass(frozen=True)
class Beta(Distribution):
    family: ClassVar[str] = "Beta"
    param_names: ClassVar[Tuple[str, ...]] = ("alpha", "beta")
    alpha: float
    beta: float

    @classmethod
    def from_params(cls, params):
        return cls(
            alpha=require_positive("alpha", params["alpha"]),
            beta=require_positive("beta", params["beta"]),
        )

    def draw(self, rng):
        return float(rng.beta(self.alpha, self.beta))

    def mean(self):
        return self.alpha / (self.alpha + self.beta)

    def variance(self):
        s = self.alpha + self.beta
        return self.alpha * self.beta / (s * s * (s + 1.0))


@dataclass(frozen=True)
class Lognormal(Distribution):
    family: ClassVar[str] = "Lognormal"
    param_names: ClassVar[Tuple[str, ...]] = ("mu", "sigma")
    mu: float
    sigma: float

    @classmethod
    def from_params(cls, params):
        mu = require_real("mu", params["mu"])
        sigma = require_non_negative("sigma", params["sigma"])
        # a standard normal draw never reaches 40
        _require_finite_support(cls.family, mu + 40.0 * sigma)
        return cls(mu=mu, sigma=sigma)

    def draw(self, rng):
        return math.exp(self.mu + self.sigma * rng.standard_normal())

    def mean(self):
        return math.exp(self.mu + self.sigma ** 2 / 2.0)

    def variance(self):
        s2 = self.sigma ** 2
        return (math.exp(s2) - 1.0) * math.exp(2.0 * self.mu + s2)


@dataclass(frozen=True)
class Pareto(Distribution):
    family: ClassVar[str] = "Pareto"
    param_names: ClassVar[Tuple[str, ...]] = ("shape", "scale")
    shape: float
    scale: float

    @classmethod
    def from_params(cls, params):
        shape = require_positive("shape", params["shape"])
        scale = require_positive("scale", params["scale"])
        # the denominator (1-U)**(1/shape) bottoms out at exp(-MAX_STANDARD_EXP / shape)
        _require_finite_support(cls.family, math.log(scale) + MAX_STANDARD_EXP / shape)
        return cls(shape=shape, scale=scale)

    def draw(self, rng):
        # inverse CDF: F(x) = 1 - (scale/x)^shape
        return self.scale / (1.0 - rng.random()) ** (1.0 / self.shape)

    def mean(self):
        a = self.shape
        return a * self.scale / (a - 1.0) if a > 1 else math.inf

    def variance(self):
        a = self.shape
        if a <= 2:
            return math.inf
        return self.scale ** 2 * a / ((a - 1.0) ** 2 * (a - 2.0))


@dataclass(frozen=True)
class Weibull(Distribution):
    family: ClassVar[str] = "Weibull"
    param_names: ClassVar[Tuple[str, ...]] = ("shape", "scale")
    shape: float
    scale: float

    @classmethod
    def from_params(cls, params):
        shape = require_positive("shape", params["shape"])
        scale = require_positive("scale", params["scale"])
        _require_finite_support(cls.family, math.log(scale) + math.log(MAX_STANDARD_EXP) / shape)
        return cls(shape=shape, scale=scale)

    def draw(self, rng):
        return self.scale * (-math.log(1.0 - rng.random())) ** (1.0 / self.shape)

    def mean(self):
        return self.scale * math.gamma(1.0 + 1.0 / self.shape)

    def variance(self):
        g1 = math.gamma(1.0 + 1.0 / self.shape)
        g2 = math.gamma(1.0 + 2.0 / self.shape)
        return self.scale ** 2 * (g2 - g1 * g1)


# ---------- Discrete ----------
@dataclass(frozen=True)
class Bernoulli(Distribution):
    family: ClassVar[str] = "Bernoulli"
    param_names: ClassVar[Tuple[str, ...]] = ("p",)
    p: float

    @classmethod
    def from_params(cls, params):
        return cls(p=require_probability("p", params["p"]))

    def draw(self, rng):
        return 1.0 if rng.random() < self.p else 0.0

    def mean(self):
        return self.p

    def variance(self):
        return self.p * (1.0 - self.p)


@dataclass(frozen=True)
class Binomial(Distribution):
    family: ClassVar[str] = "Binomial"
    param_names: ClassVar[Tuple[str, ...]] = ("n", "p")
    n: int
    p: float

    @classmethod
    def from_params(cls, params):
        return cls(
            n=require_int_at_least("n", params["n"], 0),
            p=require_probability("p", params["p"]),
        )

    def draw(self, rng):
        return float(rng.binomial(self.n, self.p))

    def mean(self):
        return self.n * self.p

    def variance(self):
        return self.n * self.p * (1.0 - self.p)


@dataclass(frozen=True)
class Geometric(Distribution):
    """Number of trials up to and including the first success."""

    family: ClassVar[str] = "Geometric"
    param_names: ClassVar[Tuple[str, ...]] = ("p",)
    p: float

    @classmethod
    def from_params(cls, params):
        return cls(p=require_probability("p", params["p"], allow_zero=False))

    def draw(self, rng):
        return float(rng.geometric(self.p))

    def mean(self):
        return 1.0 / self.p

    def variance(self):
        return (1.0 - self.p) / (self.p * self.p)


@dataclass(frozen=True)
class NegativeBinomial(Distribution):
    """Number of failures before the r-th success."""

    family: ClassVar[str] = "NegativeBinomial"
    param_names: ClassVar[Tuple[str, ...]] = ("r", "p")
    r: int
    p: float

    @classmethod
    def from_params(cls, params):
        return cls(
            r=require_int_at_least("r", params["r"], 1),
            p=require_probability("p", params["p"], allow_zero=False),
        )

    def draw(self, rng):
        return float(rng.negative_binomial(self.r, self.p))

    def mean(self):
        return self.r * (1.0 - self.p) / self.p

    def variance(self):
        return self.r * (1.0 - self.p) / (self.p * self.p)


@dataclass(frozen=True)
class Hypergeometric(Distribution):
    """Successes among `draws` items taken without replacement from `population`."""

    family: ClassVar[str] = "Hypergeometric"
    param_names: ClassVar[Tuple[str, ...]] = ("population", "successes", "draws")
    population: int
    successes: int
    draws: int

    @classmethod
    def from_params(cls, params):
        population = require_int_at_least("population", params["population"], 1)
        successes = require_int_at_least("successes", params["successes"], 0)
        draws = require_int_at_least("draws", params["draws"], 0)
        if population >= MAX_HYPERGEOMETRIC_POPULATION:
            raise DistributionSpecError(f"population must be < {MAX_HYPERGEOMETRIC_POPULATION}")
        if successes > population or draws > population:
            raise DistributionSpecError("Hypergeometric requires population >= successes and population >= draws")
        return cls(population=population, successes=successes, draws=draws)

    def draw(self, rng):
        if self.draws == 0:
            return 0.0
        bad = self.population - self.successes
        return float(rng.hypergeometric(self.successes, bad, self.draws))

    def mean(self):
        return self.draws * self.successes / self.population

    def variance(self):
        n, K, N = self.draws, self.successes, self.population
        if N <= 1:
            return 0.0
        return n * (K / N) * ((N - K) / N) * ((N - n) / (N - 1.0))


@dataclass(frozen=True)
class Poisson(Distribution):
    family: ClassVar[str] = "Poisson"
    param_names: ClassVar[Tuple[str, ...]] = ("lam",)
    lam: float

    @classmethod
    def from_params(cls, params):
        return cls(lam=require_non_negative("lam", params["lam"]))

    def draw(self, rng):
        return float(rng.poisson(self.lam))

    def mean(self):
        return self.lam

    def variance(self):
        return self.lam


@dataclass(frozen=True)
class Table(Distribution):
    """Empirical table: `values[i]` with probability `probabilities[i]`."""

    family: ClassVar[str] = "Table"
    param_names: ClassVar[Tuple[str, ...]] = ("values", "probabilities")
    values: Tuple[float, ...]
    probabilities: Tuple[float, ...]
    cumulative: Tuple[float, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        acc = 0.0
        out = []
        for p in self.probabilities:
            acc += p
            out.append(acc)
        out[-1] = 1.0
        object.__setattr__(self, "cumulative", tuple(out))

    @classmethod
    def from_params(cls, params):
        values = params["values"]
        probabilities = params["probabilities"]
        if isinstance(values, (str, bytes)) or not isinstance(values, Sequence):
            raise DistributionSpecError("values must be a list of numbers")
        if isinstance(probabilities, (str, bytes)) or not isinstance(probabilities, Sequence):
            raise DistributionSpecError("probabilities must be a list of numbers")
        if not values or len(values) != len(probabilities):
            raise DistributionSpecError("values and probabilities must be non-empty and of equal length")
        vals = tuple(require_non_negative(f"values[{i}]", v) for i, v in enumerate(values))
        probs = tuple(require_non_negative(f"probabilities[{i}]", p) for i, p in enumerate(probabilities))
        if not math.isclose(sum(probs), 1.0, rel_tol=0.0, abs_tol=1e-9):
            raise DistributionSpecError("probabilities must sum to 1")
        return cls(values=vals, probabilities=probs)

    def draw(self, rng):
        idx = bisect.bisect_right(self.cumulative, rng.random())
        return self.values[min(idx, len(self.values) - 1)]

    def mean(self):
        return sum(v * p for v, p in zip(self.values, self.probabilities))

    def variance(self):
        m = self.mean()
        return sum(p * (v - m) ** 2 for v, p in zip(self.values, self.probabilities))


FAMILIES: Tuple[Type[Distribution], ...] = (
    Bernoulli, Beta, Binomial, ChiSquare, Erlang, Exponential, F, Gamma, Geometric,
    Hypergeometric, Lognormal, NegativeBinomial, Pareto, Poisson, Table, Triangular,
    Uniform, Weibull,
)

def normalize_name(name: str) -> str:
    return "".join(ch for ch in name.strip().lower() if ch not in " _-")

REGISTRY: Dict[str, Type[Distribution]] = {normalize_name(cls.family): cls for cls in FAMILIES}


def build_distribution(spec: DistributionSpec) -> Distribution:
    """Validate a (name, params) spec into its family's parameter record."""
    if not isinstance(spec.name, str):
        raise DistributionSpecError("distribution name must be a string")
    cls = REGISTRY.get(normalize_name(spec.name))
    if cls is None:
        raise DistributionSpecError(f"Unknown distribution: {spec.name}")

    params = dict(spec.params or {})
    missing = [k for k in cls.param_names if k not in params]
    extra = sorted(k for k in params if k not in cls.param_names)
    if missing or extra:
        raise DistributionSpecError(
            f"{cls.family} takes parameters {list(cls.param_names)}"
            f" (missing: {missing}, unexpected: {extra})"
        )
    return cls.from_params(params)

def mean_variance_from_spec(spec: DistributionSpec) -> Tuple[float, float]:
    dist = build_distribution(spec)
    return dist.mean(), dist.variance()


class DistributionSampler:
    """Draws samples of one distribution from a run's random stream."""

    def __init__(self, distribution: Distribution, rng: np.random.Generator):
        self.distribution = distribution
        self._rng = rng
        value = self._draw(np.random.default_rng(VALIDATION_SEED))
        if not math.isfinite(value) or value < 0:
            raise SamplerDomainError(
                f"{distribution.family} produced an undefined sample ({value}) for {distribution}"
            )

    def _draw(self, rng: np.random.Generator) -> float:
        try:
            return float(self.distribution.draw(rng))
        except (ValueError, OverflowError, ZeroDivisionError) as exc:
            raise SamplerDomainError(f"{self.distribution.family} cannot be sampled: {exc}") from exc

    def sample(self) -> float:
        return float(self.distribution.draw(self._rng))


class ReplaySampler:
    """Replays a fixed sequence of samples, e.g. a recorded trace."""

    def __init__(self, values: Sequence[float]):
        checked = []
        for i, v in enumerate(values):
            v = require_non_negative(f"values[{i}]", v, error=ConfigError)
            checked.append(v)
        self._values = tuple(checked)
        self._pos = 0

    def __len__(self) -> int:
        return len(self._values)

    @property
    def remaining(self) -> int:
        return len(self._values) - self._pos

    def sample(self) -> float:
        if self._pos >= len(self._values):
            raise IndexError("replay sequence exhausted")
        value = self._values[self._pos]
        self._pos += 1
        return value


def build_sampler(spec: DistributionSpec, rng: np.random.Generator) -> DistributionSampler:
    return DistributionSampler(build_distribution(spec), rng)
