"""
Pairwise Granger causality between channels and sales
"""

import logging
from dataclasses import dataclass, asdict
from typing import Dict, Tuple

import pandas as pd
from statsmodels.tsa.stattools import grangercausalitytests

from .exceptions import ConfigurationError, InputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrangerResult:
    """Nested-model F-test of `cause` -> `effect`"""
    cause: str
    effect: str
    lags: int
    f_statistic: float
    p_value: float
    df_num: int
    df_denom: int
    rss_restricted: float
    rss_unrestricted: float
    alpha: float

    @property
    def rejects_null(self) -> bool:
        return self.p_value < self.alpha

    @property
    def conclusion(self) -> str:
        # Non-rejection is reported as lack of evidence only
        if self.rejects_null:
            return f"{self.cause} Granger-causes {self.effect} (p={self.p_value:.4f})"
        return f"no evidence that {self.cause} Granger-causes {self.effect} (p={self.p_value:.4f})"

    def to_dict(self) -> dict:
        out = asdict(self)
        out['rejects_null'] = self.rejects_null
        out['conclusion'] = self.conclusion
        return out


class GrangerCausalityTester:
    def __init__(self, lags: int = 1, alpha: float = 0.05):
        if lags < 1:
            raise ConfigurationError(f"Granger lag order must be >= 1, got {lags}", step='granger')
        self.lags = lags
        self.alpha = alpha

    def run(self, cause: pd.Series, effect: pd.Series) -> GrangerResult:
        """
        Test whether lags of `cause` improve prediction of `effect`

        Restricted model: effect on its own lags and a constant.
        Unrestricted model: adds the lags of cause. F-test on the RSS gap.
        """
        cause_name = str(cause.name)
        effect_name = str(effect.name)
        pair = pd.concat([effect.rename('effect'), cause.rename('cause')],
                         axis=1, join='inner').dropna()
        q = self.lags
        if len(pair) - q <= 2 * q + 1:
            raise InputError(f"{len(pair)} aligned observations are too few for {q} Granger lags",
                             channel=cause_name, step='granger')

        outcome = grangercausalitytests(pair[['effect', 'cause']].to_numpy(), maxlag=[q])
        tests, (restricted, unrestricted, _) = outcome[q]
        f_stat, p_value, df_denom, df_num = tests['ssr_ftest']

        result = GrangerResult(
            cause=cause_name,
            effect=effect_name,
            lags=q,
            f_statistic=float(f_stat),
            p_value=float(p_value),
            df_num=int(df_num),
            df_denom=int(df_denom),
            rss_restricted=float(restricted.ssr),
            rss_unrestricted=float(unrestricted.ssr),
            alpha=self.alpha
        )
        logger.info("Granger %s", result.conclusion)
        return result

    def run_both_directions(self, x: pd.Series, y: pd.Series) -> Tuple[GrangerResult, GrangerResult]:
        """(x -> y, y -> x), each tested independently"""
        return self.run(x, y), self.run(y, x)

    def run_against(self, table: pd.DataFrame, target: str) -> Dict[str, Dict[str, GrangerResult]]:
        """
        Both directions between `target` and every other column of the table

        Returns {channel: {'to_target': ..., 'from_target': ...}}.
        """
        if target not in table.columns:
            raise ConfigurationError("Target column not found", channel=target, step='granger')
        results = {}
        for channel in table.columns:
            if channel == target:
                continue
            to_target, from_target = self.run_both_directions(table[channel], table[target])
            results[channel] = {'to_target': to_target, 'from_target': from_target}
        return results
