"""
Long-run elasticities from impulse responses and budget allocation
"""

import logging
from dataclasses import dataclass
from typing import Dict, Mapping

import numpy as np
import pandas as pd
from scipy import stats

from .config import SIGNIFICANCE_T_THRESHOLD
from .exceptions import DegenerateAllocationError
from .impulse import ImpulseResponseResult

logger = logging.getLogger(__name__)


@dataclass
class ElasticityEstimate:
    channel: str
    elasticity: float
    steps: pd.DataFrame

    @property
    def n_significant(self) -> int:
        return int(self.steps['significant'].sum())

    def to_dict(self) -> dict:
        return {
            'channel': self.channel,
            'elasticity': self.elasticity,
            'n_significant_steps': self.n_significant,
            'steps': self.steps.reset_index().to_dict(orient='list')
        }


class ElasticitySelector:
    """
    Sum of the significant impulse-response steps of one channel

    Per step, se = (upper - lower) / (2 z) with z the two-sided critical
    value of the band's confidence level, and t = point / se. Steps with
    |t| above the threshold are kept. The default threshold of 1.0 is
    permissive compared with the usual 1.96.
    """

    def __init__(self, t_threshold: float = SIGNIFICANCE_T_THRESHOLD):
        self.t_threshold = t_threshold

    def step_table(self, irf: ImpulseResponseResult) -> pd.DataFrame:
        z = stats.norm.ppf(1.0 - (1.0 - irf.confidence) / 2.0)
        se = (irf.upper - irf.lower) / (2.0 * z)
        with np.errstate(divide='ignore', invalid='ignore'):
            t_stat = np.where(se > 0, irf.point / se,
                              np.where(irf.point != 0, np.inf, 0.0))
        significant = np.abs(t_stat) > self.t_threshold

        table = irf.to_frame()
        table['se'] = se
        table['t_stat'] = t_stat
        table['significant'] = significant
        table['kept'] = np.where(significant, irf.point, 0.0)
        return table

    def select(self, channel: str, irf: ImpulseResponseResult) -> ElasticityEstimate:
        table = self.step_table(irf)
        elasticity = float(table['kept'].sum())
        logger.info("%s: long-run elasticity %.4f from %d of %d significant steps",
                    channel, elasticity, int(table['significant'].sum()), len(table))
        return ElasticityEstimate(channel=channel, elasticity=elasticity, steps=table)

    def select_all(self, irfs: Mapping[str, ImpulseResponseResult]) -> Dict[str, ElasticityEstimate]:
        """One estimate per channel, each from that channel's own responses"""
        return {channel: self.select(channel, irf) for channel, irf in irfs.items()}


@dataclass
class AllocationPlan:
    shares: Dict[str, float]
    elasticities: Dict[str, float]

    def to_series(self) -> pd.Series:
        return pd.Series(self.shares, name='share')

    def top_channel(self) -> str:
        return max(self.shares, key=self.shares.get)

    def to_dict(self) -> dict:
        return {'shares': dict(self.shares), 'elasticities': dict(self.elasticities)}


class BudgetAllocator:
    """
    Normalize elasticities into budget shares

    The allocation is undefined, and an error is raised, when the signed
    sum of all elasticities is not positive. Otherwise channels with a
    non-positive elasticity get share 0 and the rest split the budget in
    proportion to their elasticity.
    """

    def __init__(self, tolerance: float = 1e-12):
        self.tolerance = tolerance

    def allocate(self, elasticities: Mapping[str, float]) -> AllocationPlan:
        if not elasticities:
            raise DegenerateAllocationError("No channels to allocate", step='allocation')

        values = {ch: float(v) for ch, v in elasticities.items()}
        signed_total = sum(values.values())

        if not np.isfinite(signed_total) or signed_total <= self.tolerance:
            raise DegenerateAllocationError(
                f"Total elasticity {signed_total:.3e} is not positive; allocation undefined",
                elasticities=values, step='allocation')

        # clipped total >= signed total > 0
        clipped = {ch: max(v, 0.0) for ch, v in values.items()}
        positive_total = sum(clipped.values())
        shares = {ch: v / positive_total for ch, v in clipped.items()}
        dropped = [ch for ch, v in values.items() if v <= 0]
        if dropped:
            logger.info("Channels with non-positive elasticity get no budget: %s", ', '.join(dropped))
        return AllocationPlan(shares=shares, elasticities=values)
