import math
from dataclasses import dataclass
from typing import Optional, Tuple

from .distributions import build_distribution
from .errors import ConfigError
from .models import SimulationConfig
from .validators import require_count


# ---------- Helper ----------
def r4(x: float) -> float:
    if x == float("inf"):
        return x
    return round(float(x), 4)


# ---------- Result Model (simple) ----------
@dataclass
class AnalyticalResult:
    interarrival_rate: float  # lambda
    service_rate: float       # mu
    utilization: float        # rho
    var_services: float
    var_interarrivals: float
    Lq: float
    Wq: float
    W: float
    L: float
    note: Optional[str] = None

def _unstable(lambda_, mu, c, varA, varS) -> AnalyticalResult:
    return AnalyticalResult(
        interarrival_rate=r4(lambda_),
        service_rate=r4(mu),
        utilization=r4(lambda_ / (c * mu)),
        var_services=r4(varS),
        var_interarrivals=r4(varA),
        Lq=float("inf"), Wq=float("inf"), W=float("inf"), L=float("inf"),
        note="Unstable system (λ ≥ cμ)"
    )


# ---------- Erlang C ----------
def erlang_c(lambda_: float, mu: float, c: int) -> Tuple[float, float]:
    """
    Returns (Pw, rho) where:
    rho = lambda / (c*mu)
    Pw = probability that an arrival must wait (Erlang C), inf when rho >= 1
    """
    if c <= 0:
        raise ValueError("c must be >= 1")

    rho = lambda_ / (c * mu)
    if rho >= 1:
        return float("inf"), rho

    a = lambda_ / mu  # offered load

    # sum_{n=0}^{c-1} (a^n / n!), built term by term so large c does not overflow
    term = 1.0
    s = 0.0
    for n in range(c):
        s += term
        term *= a / (n + 1)

    # (a^c / c!) * (c / (c - a)); term now holds a^c / c!
    last = term * (c / (c - a))

    P0 = 1.0 / (s + last)
    Pw = last * P0
    return Pw, rho


def _scv(var: float, mean: float) -> float:
    # squared coefficient of variation
    if mean <= 0:
        return 0.0
    return var / (mean * mean)


# ---------- M/M/c ----------
def mmc(lambda_: float, mu: float, c: int) -> AnalyticalResult:
    return ggc(lambda_, mu, c, 1.0 / (lambda_ * lambda_), 1.0 / (mu * mu))


# ---------- G/G/c (Allen–Cunneen approximation) ----------
def ggc(lambda_: float, mu: float, c: int, varA: float, varS: float) -> AnalyticalResult:
    """
    Allen–Cunneen:
      Wq ≈ ((Ca^2 + Cs^2) / 2) * Pw / (c*mu - lambda)
    with Pw the Erlang C waiting probability of the M/M/c system with the
    same lambda, mu and c. Exact when both distributions are exponential
    (Ca^2 = Cs^2 = 1).
    """
    if lambda_ <= 0 or mu <= 0:
        raise ValueError("lambda and mu must be > 0")
    if c <= 0:
        raise ValueError("servers c must be >= 1")

    EA = 1.0 / lambda_
    ES = 1.0 / mu

    Pw, rho = erlang_c(lambda_, mu, c)
    if rho >= 1:
        return _unstable(lambda_, mu, c, varA, varS)

    Ca2 = _scv(varA, EA)
    Cs2 = _scv(varS, ES)

    base_Wq = Pw / (c * mu - lambda_)  # M/M/c Wq
    Wq = ((Ca2 + Cs2) / 2.0) * base_Wq

    Lq = lambda_ * Wq
    W = Wq + ES
    L = lambda_ * W

    return AnalyticalResult(
        interarrival_rate=r4(lambda_),
        service_rate=r4(mu),
        utilization=r4(rho),
        var_services=r4(varS),
        var_interarrivals=r4(varA),
        Lq=r4(Lq),
        Wq=r4(Wq),
        W=r4(W),
        L=r4(L),
        note=None
    )


# ---------- From a run configuration ----------
def approximate(config: SimulationConfig) -> AnalyticalResult:
    """G/G/c figures for the distributions a run is configured with."""
    c = require_count("nserv", config.nserv)
    if config.interarrival is None or config.service is None:
        raise ConfigError("analytical figures need both interarrival and service distributions")

    arrival = build_distribution(config.interarrival)
    service = build_distribution(config.service)
    meanA, varA = arrival.mean(), arrival.variance()
    meanS, varS = service.mean(), service.variance()

    if not (0 < meanA < math.inf) or not (0 < meanS < math.inf):
        raise ConfigError("interarrival and service means must be finite and > 0")

    result = ggc(1.0 / meanA, 1.0 / meanS, c, varA, varS)
    if result.note is None and (math.isinf(varA) or math.isinf(varS)):
        result.note = "Infinite variance: waiting-time approximation diverges"
    return result
