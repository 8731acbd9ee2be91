"""
Lag order selection and VAR estimation

One OLS regression per equation on a shared regressor set of lagged values
of every variable plus an optional constant, via statsmodels' VAR.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from statsmodels.tsa.api import VAR

from .exceptions import ConfigurationError, ModelAssumptionError

logger = logging.getLogger(__name__)


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=float)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class FittedVarModel:
    """Immutable VAR(p) estimate on an aligned table"""
    names: Tuple[str, ...]
    lag_order: int
    trend: str
    # coefs[i, j, l]: effect of variable j at lag l+1 on variable i
    coefs: np.ndarray
    intercept: np.ndarray
    residuals: pd.DataFrame
    fitted_values: pd.DataFrame
    sigma_u: np.ndarray
    llf: float
    aic: float
    data: pd.DataFrame
    results: Any = None

    @property
    def k(self) -> int:
        return len(self.names)

    @property
    def nobs(self) -> int:
        return len(self.residuals)

    @property
    def lag_matrices(self) -> np.ndarray:
        """Coefficients as (p, k, k), lag_matrices[l] = A_{l+1}"""
        return np.transpose(self.coefs, (2, 0, 1))

    def index_of(self, name: str) -> int:
        try:
            return self.names.index(name)
        except ValueError:
            raise ConfigurationError(f"Variable not in model: {list(self.names)}",
                                     channel=name, step='var') from None

    def companion_matrix(self) -> np.ndarray:
        k, p = self.k, self.lag_order
        companion = np.zeros((k * p, k * p))
        companion[:k, :] = np.hstack(list(self.lag_matrices))
        if p > 1:
            companion[k:, :-k] = np.eye(k * (p - 1))
        return companion

    def is_stable(self) -> bool:
        """All companion eigenvalues strictly inside the unit circle"""
        return bool(np.all(np.abs(np.linalg.eigvals(self.companion_matrix())) < 1))

    def coefficient_table(self) -> pd.DataFrame:
        """Equations as columns, regressors (const, L{l}.{var}) as rows"""
        rows = {}
        if self.trend == 'c':
            rows['const'] = self.intercept
        for lag in range(self.lag_order):
            for j, name in enumerate(self.names):
                rows[f'L{lag + 1}.{name}'] = self.coefs[:, j, lag]
        return pd.DataFrame(rows, index=list(self.names)).T

    def to_dict(self) -> dict:
        return {
            'names': list(self.names),
            'lag_order': self.lag_order,
            'trend': self.trend,
            'nobs': self.nobs,
            'llf': self.llf,
            'aic': self.aic,
            'coefficients': self.coefficient_table().to_dict(),
            'sigma_u': self.sigma_u.tolist()
        }


def information_criterion(llf: float, nobs: int, n_params: int) -> float:
    """AIC scaled by sample size: -2 logL / T + 2 n_params / T"""
    return -2.0 * llf / nobs + 2.0 * n_params / nobs


def _n_params(k: int, p: int, trend: str) -> int:
    return k * (k * p + (1 if trend == 'c' else 0))


def check_identified(n_rows: int, k: int, p: int, trend: str = 'c') -> None:
    """
    Raise ConfigurationError when the VAR(p) is unidentified

    Needs T - p >= k p + 1 and at least one residual degree of freedom per
    equation for the residual covariance.
    """
    usable = n_rows - p
    regressors = k * p + (1 if trend == 'c' else 0)
    if usable < k * p + 1 or usable - regressors < 1:
        raise ConfigurationError(
            f"VAR({p}) with {k} variables is unidentified: {usable} usable observations "
            f"for {regressors} regressors per equation", step='var')


class VarEstimator:
    """OLS estimation of a VAR(p) with an optional constant"""

    def __init__(self, trend: str = 'c'):
        self.trend = trend

    def fit(self, data: pd.DataFrame, lag_order: int) -> FittedVarModel:
        if lag_order < 1:
            raise ConfigurationError(f"Lag order must be >= 1, got {lag_order}", step='var')
        names = tuple(str(c) for c in data.columns)
        k = len(names)
        check_identified(len(data), k, lag_order, self.trend)

        values = data.to_numpy(dtype=float)
        results = VAR(values).fit(lag_order, trend=self.trend)

        coefs = np.transpose(results.coefs, (1, 2, 0))
        if self.trend == 'c':
            intercept = np.asarray(results.coefs_exog)[:, 0]
        else:
            intercept = np.zeros(k)

        index = data.index[lag_order:]
        residuals = pd.DataFrame(np.asarray(results.resid), index=index, columns=list(names))
        fitted = pd.DataFrame(np.asarray(results.fittedvalues), index=index, columns=list(names))
        nobs = len(residuals)

        return FittedVarModel(
            names=names,
            lag_order=lag_order,
            trend=self.trend,
            coefs=_readonly(coefs),
            intercept=_readonly(intercept),
            residuals=residuals,
            fitted_values=fitted,
            sigma_u=_readonly(results.sigma_u),
            llf=float(results.llf),
            aic=information_criterion(results.llf, nobs, _n_params(k, lag_order, self.trend)),
            data=data,
            results=results
        )


@dataclass(frozen=True)
class LagOrderSelection:
    selected: int
    criteria: pd.Series
    nobs: int

    @property
    def criterion(self) -> float:
        return float(self.criteria.loc[self.selected])


class LagOrderSelector:
    """
    Information-criterion search over lag orders 1..max_lag

    Every candidate is estimated on the same sample: the first `max_lag`
    rows are held back as presample so criteria are comparable.
    """

    def __init__(self, max_lag: int = 1, trend: str = 'c'):
        if max_lag < 1:
            raise ConfigurationError(f"max_lag must be >= 1, got {max_lag}", step='lag_selection')
        self.max_lag = max_lag
        self.trend = trend
        self.estimator = VarEstimator(trend)

    def select(self, data: pd.DataFrame) -> LagOrderSelection:
        k = data.shape[1]
        check_identified(len(data), k, self.max_lag, self.trend)

        criteria: Dict[int, float] = {}
        for p in range(1, self.max_lag + 1):
            sample = data.iloc[self.max_lag - p:]
            criteria[p] = self.estimator.fit(sample, p).aic

        table = pd.Series(criteria, name='aic')
        table.index.name = 'lag'
        selected = int(table.idxmin())
        logger.info("Selected VAR lag order %d of 1..%d (AIC %.4f)",
                    selected, self.max_lag, table.loc[selected])
        return LagOrderSelection(selected=selected, criteria=table,
                                 nobs=len(data) - self.max_lag)


def estimate_var(data: pd.DataFrame,
                 max_lag: int = 1,
                 trend: str = 'c') -> Tuple[FittedVarModel, LagOrderSelection]:
    """Select the lag order and fit the VAR on the full aligned table"""
    selection = LagOrderSelector(max_lag, trend).select(data)
    model = VarEstimator(trend).fit(data, selection.selected)
    return model, selection


def check_residual_means(model: FittedVarModel, tolerance: float = 1e-8) -> pd.Series:
    """
    Post-fit sanity check: OLS with intercept has zero-mean residuals

    Returns the per-equation means; raises ModelAssumptionError when any
    exceeds the tolerance relative to the residual scale.
    """
    means = model.residuals.mean()
    if model.trend != 'c':
        return means
    scale = model.residuals.std().clip(lower=1.0)
    for name, mean in means.items():
        if abs(mean) > tolerance * scale[name]:
            raise ModelAssumptionError(f"Residual mean {mean:.3e} is not zero",
                                       channel=name, step='var_residuals')
    return means
