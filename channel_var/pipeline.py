"""
End-to-end channel VAR analysis

raw table -> stationarity transforms -> lag selection and VAR fit ->
impulse responses and Granger tests -> elasticities -> budget shares.
Per-channel intermediate results live in one ChannelState per channel,
threaded explicitly through the steps.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import pandas as pd

from .allocation import AllocationPlan, BudgetAllocator, ElasticityEstimate, ElasticitySelector
from .causality import GrangerCausalityTester, GrangerResult
from .config import AnalysisConfig
from .data_handler import prepare_channel_table
from .diagnostics import run_var_diagnostics
from .impulse import ImpulseResponseResult, ImpulseResponseSimulator
from .stationarity import StationarityTransformer, StationarityVerdict, TransformedSeries, align_transformed
from .utils import format_results_table
from .var_models import FittedVarModel, LagOrderSelection, check_residual_means, estimate_var

logger = logging.getLogger(__name__)


@dataclass
class ChannelState:
    """Everything computed for one series"""
    name: str
    raw: pd.Series
    transformed: Optional[TransformedSeries] = None
    verdict: Optional[StationarityVerdict] = None
    impulse_response: Optional[ImpulseResponseResult] = None
    granger_to_sales: Optional[GrangerResult] = None
    granger_from_sales: Optional[GrangerResult] = None
    elasticity: Optional[ElasticityEstimate] = None
    share: Optional[float] = None

    def to_dict(self) -> dict:
        out = {
            'name': self.name,
            'n_raw': len(self.raw),
            'transform': self.transformed.metadata if self.transformed is not None else None,
            'verdict': self.verdict.to_dict() if self.verdict is not None else None,
            'impulse_response': self.impulse_response.to_dict() if self.impulse_response is not None else None,
            'granger': None,
            'elasticity': self.elasticity.elasticity if self.elasticity is not None else None,
            'share': self.share
        }
        if self.granger_to_sales is not None:
            out['granger'] = {
                'to_sales': self.granger_to_sales.to_dict(),
                'from_sales': self.granger_from_sales.to_dict()
            }
        return out


@dataclass
class AnalysisResult:
    config: AnalysisConfig
    channels: Dict[str, ChannelState]
    sales: ChannelState
    aligned: pd.DataFrame
    lag_selection: LagOrderSelection
    model: FittedVarModel
    cholesky_factor: pd.DataFrame
    diagnostics: dict = field(default_factory=dict)
    plan: Optional[AllocationPlan] = None

    @property
    def elasticities(self) -> Dict[str, float]:
        return {name: state.elasticity.elasticity for name, state in self.channels.items()}

    def to_dict(self) -> dict:
        return {
            'config': self.config.to_dict(),
            'channels': {name: state.to_dict() for name, state in self.channels.items()},
            'sales': self.sales.to_dict(),
            'n_aligned': len(self.aligned),
            'lag_selection': {
                'selected': self.lag_selection.selected,
                'criteria': self.lag_selection.criteria.to_dict()
            },
            'model': self.model.to_dict(),
            'cholesky_factor': self.cholesky_factor.to_dict(),
            'diagnostics': self.diagnostics,
            'plan': self.plan.to_dict() if self.plan is not None else None
        }

    def summary(self) -> str:
        return format_results_table(self.to_dict())


def run_analysis(table: pd.DataFrame, config: AnalysisConfig) -> AnalysisResult:
    """
    Run the full pipeline on one entity's weekly table

    Parameters:
    -----------
    table : pd.DataFrame
        One row per week with the channel and sales columns named in config
    config : AnalysisConfig
        Run configuration

    Returns:
    --------
    AnalysisResult
        Verdicts, fitted model, impulse responses, Granger tests,
        elasticities and the allocation plan

    Every ChannelVarError is fatal and propagates to the caller.
    """
    config.validate()
    data = prepare_channel_table(table, config.channels, config.sales)
    logger.info("Analysing %d weeks, %d channels, sales=%s",
                len(data), len(config.channels), config.sales)

    states = {name: ChannelState(name=name, raw=data[name]) for name in data.columns}

    transformer = StationarityTransformer(alpha=config.alpha,
                                          seasonal_period=config.seasonal_period,
                                          seasonal_threshold=config.seasonal_threshold,
                                          min_seasonal_cycles=config.min_seasonal_cycles)
    for name, state in states.items():
        state.transformed, state.verdict = transformer.transform(state.raw, name)

    ordering = config.variables
    aligned = align_transformed({n: s.transformed for n, s in states.items()}, order=ordering)
    logger.info("Aligned transformed table: %d rows (weeks %s-%s)",
                len(aligned), aligned.index.min(), aligned.index.max())

    model, selection = estimate_var(aligned, max_lag=config.max_lag, trend=config.trend)
    check_residual_means(model)
    diagnostics = run_var_diagnostics(model)

    simulator = ImpulseResponseSimulator(model,
                                         causal_ordering=ordering,
                                         horizon=config.horizon,
                                         confidence=config.confidence,
                                         n_bootstrap=config.n_bootstrap,
                                         seed=config.seed,
                                         n_jobs=config.n_jobs,
                                         min_success=config.min_bootstrap_success,
                                         verbose=config.verbose)
    irfs = simulator.simulate(config.sales, config.channels)

    tester = GrangerCausalityTester(lags=config.granger_lags or model.lag_order, alpha=config.alpha)
    granger = tester.run_against(aligned[list(config.channels) + [config.sales]], config.sales)

    selector = ElasticitySelector(t_threshold=config.t_threshold)
    for name in config.channels:
        state = states[name]
        state.impulse_response = irfs[name]
        state.granger_to_sales = granger[name]['to_target']
        state.granger_from_sales = granger[name]['from_target']
        state.elasticity = selector.select(name, irfs[name])

    plan = BudgetAllocator().allocate({name: states[name].elasticity.elasticity
                                       for name in config.channels})
    for name, share in plan.shares.items():
        states[name].share = share
    logger.info("Top channel: %s (%.1f%% of budget)", plan.top_channel(),
                100 * plan.shares[plan.top_channel()])

    return AnalysisResult(
        config=config,
        channels={name: states[name] for name in config.channels},
        sales=states[config.sales],
        aligned=aligned,
        lag_selection=selection,
        model=model,
        cholesky_factor=simulator.cholesky_factor,
        diagnostics=diagnostics,
        plan=plan
    )
