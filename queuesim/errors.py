class SimulationError(ValueError):
    """Base class for errors raised while building a simulation run."""


class ConfigError(SimulationError):
    """Task count, server count, seed or sampler setup is invalid."""


class DistributionSpecError(SimulationError):
    """Unknown family, wrong parameter set, or parameter out of domain."""


class SamplerDomainError(SimulationError):
    """A distribution produced an undefined validation sample."""
