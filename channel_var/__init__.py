"""
Channel VAR Analysis Package
============================

Vector autoregression on weekly marketing channel spend and sales:
stationarity transforms, lag selection, orthogonalized impulse responses
with bootstrap bands, Granger causality, long-run elasticities and
budget shares.
"""

from .config import AnalysisConfig
from .data_handler import load_data, prepare_channel_table, check_data_quality
from .stationarity import StationarityTransformer, align_transformed, majority_vote
from .var_models import VarEstimator, LagOrderSelector, estimate_var
from .impulse import ImpulseResponseSimulator
from .causality import GrangerCausalityTester
from .allocation import ElasticitySelector, BudgetAllocator
from .diagnostics import run_var_diagnostics
from .pipeline import AnalysisResult, ChannelState, run_analysis
from .exceptions import (
    ChannelVarError,
    InputError,
    ConfigurationError,
    ModelAssumptionError,
    DegenerateAllocationError,
    BootstrapError
)
from .utils import setup_logger, save_results

__version__ = "1.0.0"
__author__ = "Channel VAR Analysis Framework"

__all__ = [
    'AnalysisConfig',
    'load_data',
    'prepare_channel_table',
    'check_data_quality',
    'StationarityTransformer',
    'align_transformed',
    'majority_vote',
    'VarEstimator',
    'LagOrderSelector',
    'estimate_var',
    'ImpulseResponseSimulator',
    'GrangerCausalityTester',
    'ElasticitySelector',
    'BudgetAllocator',
    'run_var_diagnostics',
    'AnalysisResult',
    'ChannelState',
    'run_analysis',
    'ChannelVarError',
    'InputError',
    'ConfigurationError',
    'ModelAssumptionError',
    'DegenerateAllocationError',
    'BootstrapError',
    'setup_logger',
    'save_results'
]
