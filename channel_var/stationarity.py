"""
Stationarity testing and transformation of the weekly channel series

Each series is log scaled, tested for a unit root by three tests whose
verdicts are combined by majority vote, checked for seasonal strength and
differenced accordingly. The transformed series is tested again and must
come out stationary.
"""

import logging
import warnings
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Tuple

import numpy as np
import pandas as pd
from arch.unitroot import PhillipsPerron
from statsmodels.tsa.seasonal import STL
from statsmodels.tsa.stattools import adfuller, kpss

from .config import DEFAULT_SEASONAL_PERIOD, MIN_SEASONAL_CYCLES, SEASONAL_STRENGTH_THRESHOLD
from .exceptions import InputError, ModelAssumptionError

logger = logging.getLogger(__name__)

MIN_TEST_OBSERVATIONS = 20


class UnitRootTest(str, Enum):
    ADF = 'adf'
    PP = 'pp'
    KPSS = 'kpss'


@dataclass(frozen=True)
class UnitRootTestResult:
    """Outcome of one unit-root or stationarity test"""
    kind: UnitRootTest
    statistic: float
    p_value: float
    null_hypothesis: str
    non_stationary: bool

    def to_dict(self) -> dict:
        return {
            'test': self.kind.value,
            'statistic': float(self.statistic),
            'p_value': float(self.p_value),
            'null_hypothesis': self.null_hypothesis,
            'non_stationary': bool(self.non_stationary)
        }


def majority_vote(verdicts: Mapping[UnitRootTest, bool], quorum: int = 2) -> bool:
    """
    Combine per-test non-stationarity verdicts

    Returns True (non-stationary) when at least `quorum` tests say so.
    """
    return sum(bool(v) for v in verdicts.values()) >= quorum


@dataclass
class StationarityVerdict:
    name: str
    tests: Dict[UnitRootTest, UnitRootTestResult]
    seasonal_strength: Optional[float]
    needs_first_diff: bool
    needs_seasonal_diff: bool
    recheck: Dict[UnitRootTest, UnitRootTestResult] = field(default_factory=dict)

    @property
    def recheck_non_stationary(self) -> bool:
        return majority_vote({k: r.non_stationary for k, r in self.recheck.items()})

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'tests': {k.value: r.to_dict() for k, r in self.tests.items()},
            'seasonal_strength': self.seasonal_strength,
            'needs_first_diff': self.needs_first_diff,
            'needs_seasonal_diff': self.needs_seasonal_diff,
            'recheck': {k.value: r.to_dict() for k, r in self.recheck.items()}
        }


@dataclass
class TransformedSeries:
    name: str
    values: pd.Series
    first_diff: bool
    seasonal_diff: bool
    seasonal_period: Optional[int]
    log: bool = True

    @property
    def metadata(self) -> dict:
        return {
            'log': self.log,
            'first_diff': self.first_diff,
            'seasonal_diff': self.seasonal_diff,
            'seasonal_period': self.seasonal_period
        }

    def __len__(self) -> int:
        return len(self.values)


def difference(series: pd.Series,
               first_diff: bool = False,
               seasonal_diff: bool = False,
               seasonal_period: Optional[int] = None) -> pd.Series:
    """
    Apply first then seasonal differencing, dropping the leading rows lost

    The result is shorter than the input by (first_diff ? 1 : 0) plus
    (seasonal_diff ? seasonal_period : 0), and keeps the original index
    labels of the surviving rows.
    """
    out = series
    if first_diff:
        out = out.diff().iloc[1:]
    if seasonal_diff:
        if not seasonal_period:
            raise ValueError("seasonal differencing requires a seasonal period")
        out = out.diff(seasonal_period).iloc[seasonal_period:]
    return out


class StationarityTransformer:
    """Decides and applies log/differencing transforms per series"""

    def __init__(self,
                 alpha: float = 0.05,
                 seasonal_period: Optional[int] = DEFAULT_SEASONAL_PERIOD,
                 seasonal_threshold: float = SEASONAL_STRENGTH_THRESHOLD,
                 min_seasonal_cycles: int = MIN_SEASONAL_CYCLES):
        self.alpha = alpha
        self.seasonal_period = seasonal_period
        self.seasonal_threshold = seasonal_threshold
        self.min_seasonal_cycles = min_seasonal_cycles

    def adf_test(self, series: pd.Series) -> UnitRootTestResult:
        """Augmented Dickey-Fuller with constant and trend (null: unit root)"""
        stat, pvalue = adfuller(series.values, regression='ct', autolag='AIC')[:2]
        return UnitRootTestResult(UnitRootTest.ADF, stat, pvalue, 'unit root',
                                  non_stationary=pvalue >= self.alpha)

    def pp_test(self, series: pd.Series) -> UnitRootTestResult:
        """Phillips-Perron with constant and trend (null: unit root)"""
        pp = PhillipsPerron(series.values, trend='ct')
        return UnitRootTestResult(UnitRootTest.PP, pp.stat, pp.pvalue, 'unit root',
                                  non_stationary=pp.pvalue >= self.alpha)

    def kpss_test(self, series: pd.Series) -> UnitRootTestResult:
        """KPSS level stationarity (null: stationary)"""
        with warnings.catch_warnings():
            # p-values outside the lookup table are clipped and warned about
            warnings.simplefilter('ignore')
            stat, pvalue = kpss(series.values, regression='c', nlags='auto')[:2]
        return UnitRootTestResult(UnitRootTest.KPSS, stat, pvalue, 'stationary',
                                  non_stationary=pvalue < self.alpha)

    def run_unit_root_tests(self, series: pd.Series, name: str) -> Dict[UnitRootTest, UnitRootTestResult]:
        if len(series) < MIN_TEST_OBSERVATIONS:
            raise InputError(
                f"{len(series)} observations, at least {MIN_TEST_OBSERVATIONS} needed for unit-root tests",
                channel=name, step='stationarity')
        return {
            UnitRootTest.ADF: self.adf_test(series),
            UnitRootTest.PP: self.pp_test(series),
            UnitRootTest.KPSS: self.kpss_test(series)
        }

    def seasonal_strength(self, series: pd.Series) -> Optional[float]:
        """
        Seasonal strength F_s = max(0, 1 - Var(R) / Var(S + R)) of an additive
        STL decomposition with a periodic seasonal component

        Returns None when the seasonal check does not apply: no period, or
        fewer than `min_seasonal_cycles` full cycles.
        """
        period = self.seasonal_period
        if period is None or len(series) < self.min_seasonal_cycles * period:
            return None

        n = len(series)
        # seasonal window wider than the sample behaves like a periodic seasonal
        decomposition = STL(series.values, period=period, seasonal=10 * n + 1,
                            seasonal_deg=0, robust=False).fit()
        remainder = np.asarray(decomposition.resid)
        seasonal = np.asarray(decomposition.seasonal)

        denominator = np.var(seasonal + remainder)
        if denominator <= 0:
            return 0.0
        return float(max(0.0, 1.0 - np.var(remainder) / denominator))

    def assess(self, log_series: pd.Series, name: str) -> StationarityVerdict:
        tests = self.run_unit_root_tests(log_series, name)
        strength = self.seasonal_strength(log_series)
        if strength is None and self.seasonal_period is not None:
            logger.info("%s: %d observations cover fewer than %d seasonal cycles of %d, "
                        "seasonal check skipped", name, len(log_series),
                        self.min_seasonal_cycles, self.seasonal_period)

        return StationarityVerdict(
            name=name,
            tests=tests,
            seasonal_strength=strength,
            needs_first_diff=majority_vote({k: r.non_stationary for k, r in tests.items()}),
            needs_seasonal_diff=strength is not None and strength > self.seasonal_threshold
        )

    def transform(self, raw: pd.Series, name: Optional[str] = None) -> Tuple[TransformedSeries, StationarityVerdict]:
        """
        Log scale, test, difference and re-test a single raw series

        Raises InputError on non-positive, missing or constant input and
        ModelAssumptionError when the transformed series still fails the
        majority vote.
        """
        name = name or str(raw.name)
        if raw.isna().any():
            raise InputError("Series contains missing values", channel=name, step='stationarity')
        if (raw <= 0).any():
            raise InputError("Series contains non-positive values; log transform undefined",
                             channel=name, step='stationarity')
        if raw.nunique() < 2:
            raise InputError("Series is constant and cannot be modeled",
                             channel=name, step='stationarity')

        log_series = np.log(raw.astype(float))
        verdict = self.assess(log_series, name)

        transformed = difference(log_series,
                                 first_diff=verdict.needs_first_diff,
                                 seasonal_diff=verdict.needs_seasonal_diff,
                                 seasonal_period=self.seasonal_period)
        logger.info("%s: first_diff=%s seasonal_diff=%s (seasonal strength %s), %d -> %d rows",
                    name, verdict.needs_first_diff, verdict.needs_seasonal_diff,
                    'n/a' if verdict.seasonal_strength is None else f"{verdict.seasonal_strength:.3f}",
                    len(raw), len(transformed))

        verdict.recheck = self.run_unit_root_tests(transformed, name)
        if verdict.recheck_non_stationary:
            details = ', '.join(f"{k.value} p={r.p_value:.4f}" for k, r in verdict.recheck.items())
            raise ModelAssumptionError(
                f"Series is still non-stationary after transformation ({details})",
                channel=name, step='stationarity_recheck')

        result = TransformedSeries(
            name=name,
            values=transformed.rename(name),
            first_diff=verdict.needs_first_diff,
            seasonal_diff=verdict.needs_seasonal_diff,
            seasonal_period=self.seasonal_period if verdict.needs_seasonal_diff else None
        )
        return result, verdict

    def transform_all(self, table: pd.DataFrame) -> Dict[str, Tuple[TransformedSeries, StationarityVerdict]]:
        """Transform every column of the table independently"""
        return {col: self.transform(table[col], col) for col in table.columns}


def align_transformed(transformed: Mapping[str, TransformedSeries],
                      order: Optional[list] = None) -> pd.DataFrame:
    """
    Re-align transformed series to their common index

    Leading rows are dropped until every series is defined; the result is
    a contiguous table with columns in `order` (default: mapping order).
    """
    order = list(order) if order is not None else list(transformed.keys())
    frame = pd.concat([transformed[name].values.rename(name) for name in order],
                      axis=1, join='inner').sort_index().dropna()
    if frame.empty:
        raise InputError("Transformed series have no common observations", step='align')
    return frame
