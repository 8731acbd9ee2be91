import pytest

from channel_var.config import AnalysisConfig, SEASONAL_STRENGTH_THRESHOLD, SIGNIFICANCE_T_THRESHOLD
from channel_var.exceptions import ConfigurationError


def test_defaults():
    config = AnalysisConfig(channels=['tv', 'search'])
    assert config.sales == 'sales'
    assert config.max_lag == 1
    assert config.horizon == 10
    assert config.confidence == 0.95
    assert config.t_threshold == SIGNIFICANCE_T_THRESHOLD == 1.0
    assert config.seasonal_threshold == SEASONAL_STRENGTH_THRESHOLD == 0.64
    assert config.validate() is config


def test_variables_default_to_channels_then_sales():
    config = AnalysisConfig(channels=['tv', 'search'], sales='revenue')
    assert config.variables == ['tv', 'search', 'revenue']


def test_explicit_causal_ordering():
    config = AnalysisConfig(channels=['tv', 'search'], causal_ordering=['search', 'tv', 'sales'])
    assert config.validate().variables == ['search', 'tv', 'sales']


@pytest.mark.parametrize('kwargs', [
    {'channels': []},
    {'channels': ['tv', 'tv']},
    {'channels': ['tv', 'sales']},
    {'channels': ['tv'], 'causal_ordering': ['tv']},
    {'channels': ['tv'], 'causal_ordering': ['tv', 'sales', 'tv']},
    {'channels': ['tv'], 'max_lag': 0},
    {'channels': ['tv'], 'trend': 'ct'},
    {'channels': ['tv'], 'seasonal_period': 1},
    {'channels': ['tv'], 'min_seasonal_cycles': 1},
    {'channels': ['tv'], 'horizon': 0},
    {'channels': ['tv'], 'confidence': 1.0},
    {'channels': ['tv'], 'n_bootstrap': 0},
    {'channels': ['tv'], 'min_bootstrap_success': 0.0},
    {'channels': ['tv'], 't_threshold': -1.0},
    {'channels': ['tv'], 'n_jobs': 0},
    {'channels': ['tv'], 'granger_lags': 0},
])
def test_invalid_configuration(kwargs):
    with pytest.raises(ConfigurationError):
        AnalysisConfig(**kwargs).validate()


def test_error_carries_step():
    with pytest.raises(ConfigurationError) as excinfo:
        AnalysisConfig(channels=['tv'], max_lag=0).validate()
    assert excinfo.value.step == 'config'
    assert 'step=config' in str(excinfo.value)


def test_to_dict_round_trips_fields():
    config = AnalysisConfig(channels=['tv'], seed=3)
    d = config.to_dict()
    assert d['channels'] == ['tv']
    assert d['seed'] == 3
    assert AnalysisConfig(**d) == config
