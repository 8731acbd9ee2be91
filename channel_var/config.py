"""
Configuration for the channel VAR analysis
"""

from dataclasses import dataclass, asdict
from typing import List, Optional

from .exceptions import ConfigurationError

# Keeps any impulse response step whose point estimate
# exceeds one pseudo standard error, not the conventional 1.96.
SIGNIFICANCE_T_THRESHOLD = 1.0

# Seasonal strength above this value is treated as a seasonal unit root.
SEASONAL_STRENGTH_THRESHOLD = 0.64

DEFAULT_SEASONAL_PERIOD = 52

# Full seasonal cycles required before seasonal strength is computed.
# With fewer, the periodic seasonal fits noise and F_s runs near 0.5.
MIN_SEASONAL_CYCLES = 3


@dataclass
class AnalysisConfig:
    """Configuration for one pipeline run"""
    channels: List[str]
    sales: str = 'sales'
    # Cholesky ordering, most exogenous first. Defaults to channels then sales.
    causal_ordering: Optional[List[str]] = None
    max_lag: int = 1
    trend: str = 'c'
    seasonal_period: Optional[int] = DEFAULT_SEASONAL_PERIOD
    alpha: float = 0.05
    seasonal_threshold: float = SEASONAL_STRENGTH_THRESHOLD
    min_seasonal_cycles: int = MIN_SEASONAL_CYCLES
    horizon: int = 10
    confidence: float = 0.95
    n_bootstrap: int = 100
    min_bootstrap_success: float = 0.9
    t_threshold: float = SIGNIFICANCE_T_THRESHOLD
    seed: Optional[int] = None
    n_jobs: int = 1
    verbose: bool = False
    description: str = ""
    granger_lags: Optional[int] = None

    @property
    def variables(self) -> List[str]:
        """Modeled variables in causal order"""
        if self.causal_ordering is not None:
            return list(self.causal_ordering)
        return list(self.channels) + [self.sales]

    def validate(self) -> 'AnalysisConfig':
        if not self.channels:
            raise ConfigurationError("At least one channel is required", step='config')
        if len(set(self.channels)) != len(self.channels):
            raise ConfigurationError("Channel names must be unique", step='config')
        if self.sales in self.channels:
            raise ConfigurationError("Sales column cannot also be a channel",
                                     channel=self.sales, step='config')
        if self.causal_ordering is not None:
            expected = set(self.channels) | {self.sales}
            if set(self.causal_ordering) != expected or len(self.causal_ordering) != len(expected):
                raise ConfigurationError(
                    f"Causal ordering must list every channel and the sales column exactly once, "
                    f"got {self.causal_ordering}", step='config')
        if self.max_lag < 1:
            raise ConfigurationError(f"max_lag must be >= 1, got {self.max_lag}", step='config')
        if self.trend not in ('c', 'n'):
            raise ConfigurationError(f"trend must be 'c' or 'n', got {self.trend!r}", step='config')
        if self.seasonal_period is not None and self.seasonal_period < 2:
            raise ConfigurationError(
                f"seasonal_period must be >= 2 or None, got {self.seasonal_period}", step='config')
        if self.min_seasonal_cycles < 2:
            raise ConfigurationError(
                f"min_seasonal_cycles must be >= 2, got {self.min_seasonal_cycles}", step='config')
        if not 0 < self.alpha < 1:
            raise ConfigurationError(f"alpha must be in (0, 1), got {self.alpha}", step='config')
        if self.horizon < 1:
            raise ConfigurationError(f"horizon must be >= 1, got {self.horizon}", step='config')
        if not 0 < self.confidence < 1:
            raise ConfigurationError(
                f"confidence must be in (0, 1), got {self.confidence}", step='config')
        if self.n_bootstrap < 1:
            raise ConfigurationError(
                f"n_bootstrap must be >= 1, got {self.n_bootstrap}", step='config')
        if not 0 < self.min_bootstrap_success <= 1:
            raise ConfigurationError(
                f"min_bootstrap_success must be in (0, 1], got {self.min_bootstrap_success}",
                step='config')
        if self.t_threshold < 0:
            raise ConfigurationError(
                f"t_threshold must be non-negative, got {self.t_threshold}", step='config')
        if self.n_jobs < 1:
            raise ConfigurationError(f"n_jobs must be >= 1, got {self.n_jobs}", step='config')
        if self.granger_lags is not None and self.granger_lags < 1:
            raise ConfigurationError(
                f"granger_lags must be >= 1, got {self.granger_lags}", step='config')
        return self

    def to_dict(self) -> dict:
        return asdict(self)
