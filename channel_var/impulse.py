"""
Orthogonalized impulse responses with residual-bootstrap confidence bands

Shocks are orthogonalized with the lower-triangular Cholesky factor of the
residual covariance. The causal ordering behind that factor is an explicit
input: the fitted model is permuted into it before anything is computed,
so results never depend on the column order the model was fitted with.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from .exceptions import BootstrapError, ConfigurationError
from .var_models import FittedVarModel, VarEstimator

logger = logging.getLogger(__name__)


def ma_coefficients(lag_matrices: np.ndarray, horizon: int) -> np.ndarray:
    """
    Moving-average coefficients Phi_0..Phi_H of a VAR

    Phi_0 = I and Phi_h = sum_{l=1..min(h,p)} Phi_{h-l} A_l.
    """
    p, k, _ = lag_matrices.shape
    phis = np.zeros((horizon + 1, k, k))
    phis[0] = np.eye(k)
    for h in range(1, horizon + 1):
        for lag in range(1, min(h, p) + 1):
            phis[h] += phis[h - lag] @ lag_matrices[lag - 1]
    return phis


def orthogonalized_irf(lag_matrices: np.ndarray, sigma_u: np.ndarray, horizon: int) -> np.ndarray:
    """
    Theta_h = Phi_h P with P the lower Cholesky factor of sigma_u

    theta[h, i, j] is the response of variable i at step h to a one
    standard deviation orthogonal shock in variable j at step 0.
    """
    chol = np.linalg.cholesky(sigma_u)
    return ma_coefficients(lag_matrices, horizon) @ chol


@dataclass
class ImpulseResponseResult:
    impulse: str
    response: str
    confidence: float
    point: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    n_bootstrap: int

    @property
    def horizon(self) -> int:
        return len(self.point) - 1

    def to_frame(self) -> pd.DataFrame:
        frame = pd.DataFrame({'point': self.point, 'lower': self.lower, 'upper': self.upper})
        frame.index.name = 'horizon'
        return frame

    def to_dict(self) -> dict:
        return {
            'impulse': self.impulse,
            'response': self.response,
            'confidence': self.confidence,
            'n_bootstrap': self.n_bootstrap,
            'point': self.point.tolist(),
            'lower': self.lower.tolist(),
            'upper': self.upper.tolist()
        }


class ImpulseResponseSimulator:
    """Point impulse responses and bootstrap bands for a fitted VAR"""

    def __init__(self,
                 model: FittedVarModel,
                 causal_ordering: Sequence[str],
                 horizon: int = 10,
                 confidence: float = 0.95,
                 n_bootstrap: int = 100,
                 seed: Optional[int] = None,
                 n_jobs: int = 1,
                 min_success: float = 0.9,
                 verbose: bool = False):
        if horizon < 1:
            raise ConfigurationError(f"horizon must be >= 1, got {horizon}", step='impulse_response')
        if n_bootstrap < 1:
            raise ConfigurationError(f"n_bootstrap must be >= 1, got {n_bootstrap}",
                                     step='impulse_response')
        if not 0 < confidence < 1:
            raise ConfigurationError(f"confidence must be in (0, 1), got {confidence}",
                                     step='impulse_response')
        ordering = list(causal_ordering)
        if sorted(ordering) != sorted(model.names):
            raise ConfigurationError(
                f"Causal ordering {ordering} must be a permutation of {list(model.names)}",
                step='impulse_response')

        if n_bootstrap < 2.0 / (1.0 - confidence):
            logger.warning("%d bootstrap replicates are too few for stable %.0f%% percentile bands "
                           "(at least %d recommended)", n_bootstrap, confidence * 100,
                           int(np.ceil(2.0 / (1.0 - confidence))))

        self.model = model
        self.ordering = ordering
        self.horizon = horizon
        self.confidence = confidence
        self.n_bootstrap = n_bootstrap
        self.seed = seed
        self.n_jobs = n_jobs
        self.min_success = min_success
        self.verbose = verbose

        self._perm = np.array([model.index_of(name) for name in ordering])
        self._point = None
        self._replicates = None
        self.n_failed = 0

    def _permute(self, lag_matrices: np.ndarray, sigma_u: np.ndarray):
        perm = self._perm
        return lag_matrices[:, perm][:, :, perm], sigma_u[np.ix_(perm, perm)]

    @property
    def cholesky_factor(self) -> pd.DataFrame:
        """Lower Cholesky factor of the residual covariance in causal order"""
        _, sigma = self._permute(self.model.lag_matrices, self.model.sigma_u)
        return pd.DataFrame(np.linalg.cholesky(sigma), index=self.ordering, columns=self.ordering)

    def orthogonal_responses(self) -> np.ndarray:
        """(H+1, k, k) point responses, axes in causal order"""
        if self._point is None:
            lags, sigma = self._permute(self.model.lag_matrices, self.model.sigma_u)
            self._point = orthogonalized_irf(lags, sigma, self.horizon)
        return self._point

    def _simulate_replicate(self, rng: np.random.Generator) -> np.ndarray:
        model = self.model
        p = model.lag_order
        data = model.data.to_numpy(dtype=float)
        resid = model.residuals.to_numpy()
        resid = resid - resid.mean(axis=0)
        lags = model.lag_matrices

        n = len(resid)
        draws = resid[rng.integers(0, n, size=n)]
        series = np.empty_like(data)
        series[:p] = data[:p]
        for t in range(p, len(data)):
            value = model.intercept + draws[t - p]
            for lag in range(1, p + 1):
                value = value + lags[lag - 1] @ series[t - lag]
            series[t] = value

        if not np.all(np.isfinite(series)):
            raise np.linalg.LinAlgError("bootstrap series diverged")

        frame = pd.DataFrame(series, index=model.data.index, columns=list(model.names))
        refit = VarEstimator(model.trend).fit(frame, p)
        lags_b, sigma_b = self._permute(refit.lag_matrices, refit.sigma_u)
        theta = orthogonalized_irf(lags_b, sigma_b, self.horizon)
        if not np.all(np.isfinite(theta)):
            raise np.linalg.LinAlgError("non-finite bootstrap impulse response")
        return theta

    def _run_one(self, seed_seq: np.random.SeedSequence) -> Optional[np.ndarray]:
        try:
            return self._simulate_replicate(np.random.default_rng(seed_seq))
        except np.linalg.LinAlgError as e:
            logger.debug("Bootstrap replicate discarded: %s", e)
            return None

    def bootstrap(self) -> np.ndarray:
        """(n_ok, H+1, k, k) replicate responses; failed replicates dropped"""
        if self._replicates is not None:
            return self._replicates

        children = np.random.SeedSequence(self.seed).spawn(self.n_bootstrap)
        progress = dict(total=self.n_bootstrap, desc="Bootstrap IRF", disable=not self.verbose)
        if self.n_jobs > 1:
            with ThreadPoolExecutor(max_workers=self.n_jobs) as executor:
                outcomes = list(tqdm(executor.map(self._run_one, children), **progress))
        else:
            outcomes = [self._run_one(child) for child in tqdm(children, **progress)]

        replicates = [theta for theta in outcomes if theta is not None]
        self.n_failed = self.n_bootstrap - len(replicates)
        success = len(replicates) / self.n_bootstrap
        if not replicates or success < self.min_success:
            raise BootstrapError(
                f"Only {len(replicates)} of {self.n_bootstrap} bootstrap replicates succeeded "
                f"(minimum fraction {self.min_success:.2f})", step='impulse_response')
        if self.n_failed:
            logger.warning("%d of %d bootstrap replicates failed and were discarded",
                           self.n_failed, self.n_bootstrap)

        self._replicates = np.stack(replicates)
        return self._replicates

    def bands(self):
        """Lower and upper percentile bands, each (H+1, k, k)"""
        tail = (1.0 - self.confidence) / 2.0
        lower, upper = np.percentile(self.bootstrap(), [100 * tail, 100 * (1 - tail)], axis=0)
        return lower, upper

    def simulate(self, response: str, impulses: Optional[Iterable[str]] = None) -> Dict[str, ImpulseResponseResult]:
        """
        Impulse responses of `response` to each impulse variable

        Parameters:
        -----------
        response : str
            Variable whose trajectory is read off
        impulses : iterable of str, optional
            Shocked variables; defaults to every other variable

        Returns:
        --------
        dict
            impulse name -> ImpulseResponseResult over steps 0..H
        """
        names: List[str] = self.ordering
        if response not in names:
            raise ConfigurationError("Unknown response variable", channel=response,
                                     step='impulse_response')
        if impulses is None:
            impulses = [n for n in names if n != response]
        impulses = list(impulses)
        for name in impulses:
            if name not in names:
                raise ConfigurationError("Unknown impulse variable", channel=name,
                                         step='impulse_response')

        point = self.orthogonal_responses()
        lower, upper = self.bands()
        n_ok = len(self.bootstrap())
        r = names.index(response)

        results = {}
        for impulse in impulses:
            j = names.index(impulse)
            results[impulse] = ImpulseResponseResult(
                impulse=impulse,
                response=response,
                confidence=self.confidence,
                point=point[:, r, j].copy(),
                lower=lower[:, r, j].copy(),
                upper=upper[:, r, j].copy(),
                n_bootstrap=n_ok
            )
        return results
