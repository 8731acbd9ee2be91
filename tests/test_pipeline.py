import json

import numpy as np
import pytest

from channel_var.config import AnalysisConfig
from channel_var.exceptions import ConfigurationError, DegenerateAllocationError, InputError
from channel_var.main import main
from channel_var.pipeline import run_analysis
from channel_var.utils import format_results_table, save_results


@pytest.fixture(scope='module')
def result():
    from conftest import CHANNELS, make_channel_table
    config = AnalysisConfig(channels=list(CHANNELS), sales='sales', max_lag=2,
                            seasonal_period=None, horizon=10, n_bootstrap=100, seed=123)
    return run_analysis(make_channel_table(), config)


def test_model_shape(result, channels):
    assert result.model.names == tuple(channels + ['sales'])
    assert result.model.lag_order in (1, 2)
    assert len(result.aligned) == 113
    assert list(result.cholesky_factor.index) == channels + ['sales']


def test_stationary_inputs_stay_in_levels(result):
    for state in list(result.channels.values()) + [result.sales]:
        assert not state.verdict.needs_seasonal_diff
        assert state.verdict.seasonal_strength is None
        assert not state.verdict.recheck_non_stationary


def test_effect_signs_recovered(result):
    coefs = result.model.coefficient_table()['sales']
    assert coefs['L1.search'] > 0.5
    assert coefs['L1.social'] > 0.2
    assert coefs['L1.display'] > 0.0


def test_impulse_responses_cover_horizon(result, channels):
    for name in channels:
        irf = result.channels[name].impulse_response
        assert irf.response == 'sales'
        assert irf.horizon == 10
        assert np.all(irf.lower <= irf.upper)


def test_allocation(result, channels):
    shares = {name: state.share for name, state in result.channels.items()}
    assert set(shares) == set(channels)
    assert sum(shares.values()) == pytest.approx(1.0)
    assert all(s >= 0 for s in shares.values())
    assert result.plan.top_channel() == 'search'
    assert shares['search'] > shares['display']
    assert shares['search'] > 0.35
    assert result.elasticities['search'] > 0


def test_granger_detects_strongest_channel(result):
    assert result.channels['search'].granger_to_sales.rejects_null
    assert result.channels['search'].granger_to_sales.effect == 'sales'
    assert result.channels['search'].granger_from_sales.cause == 'sales'


def test_results_serialize(result, tmp_path):
    results = result.to_dict()
    assert set(results['channels']['search']['granger']) == {'to_sales', 'from_sales'}

    path = tmp_path / 'results.json'
    save_results(results, str(path), format='json')
    loaded = json.loads(path.read_text())
    assert loaded['plan']['shares']['search'] == pytest.approx(result.plan.shares['search'])

    csv_path = tmp_path / 'allocation.csv'
    save_results(results, str(csv_path), format='csv')
    assert csv_path.read_text().splitlines()[0].startswith('channel,elasticity,share')

    txt_path = tmp_path / 'results.txt'
    save_results(results, str(txt_path), format='txt')
    assert 'CHANNEL VAR ANALYSIS RESULTS' in txt_path.read_text()

    with pytest.raises(ValueError):
        save_results(results, str(tmp_path / 'results.xml'), format='xml')

    table = format_results_table(results)
    for name in result.channels:
        assert name in table


def test_explicit_ordering_changes_cholesky(channel_table, channels):
    ordering = ['sales'] + channels
    config = AnalysisConfig(channels=channels, causal_ordering=ordering,
                            seasonal_period=None, n_bootstrap=40, seed=1)
    result = run_analysis(channel_table, config)
    assert list(result.cholesky_factor.index) == ordering
    assert list(result.aligned.columns) == ordering


def test_non_positive_input_is_rejected(channel_table, channels):
    channel_table.loc[5, 'social'] = 0.0
    config = AnalysisConfig(channels=channels, seasonal_period=None, n_bootstrap=40)
    with pytest.raises(InputError) as excinfo:
        run_analysis(channel_table, config)
    assert excinfo.value.channel == 'social'


def test_unidentified_lag_order_is_rejected(channel_table, channels):
    config = AnalysisConfig(channels=channels, max_lag=20, seasonal_period=None, n_bootstrap=40)
    with pytest.raises(ConfigurationError):
        run_analysis(channel_table.iloc[:60], config)


def test_cli(tmp_path, channel_table, channels):
    data = tmp_path / 'weekly.csv'
    channel_table.reset_index().to_csv(data, index=False)
    output = tmp_path / 'report.txt'

    status = main(['--data', str(data), '--channels', *channels, '--sales', 'sales',
                   '--output', str(output), '--bootstrap', '40', '--seed', '5', '--quiet'])
    assert status == 0
    assert 'SUMMARY OF KEY RESULTS' in output.read_text()
    payload = json.loads((tmp_path / 'report.json').read_text())
    assert set(payload['plan']['shares']) == set(channels)
    assert (tmp_path / 'report_allocation.csv').exists()


def test_cli_reports_failure(tmp_path, channel_table, channels):
    channel_table.loc[3, 'search'] = -1.0
    data = tmp_path / 'weekly.csv'
    channel_table.reset_index().to_csv(data, index=False)

    status = main(['--data', str(data), '--channels', *channels,
                   '--output', str(tmp_path / 'report.txt'), '--seasonal-period', '0',
                   '--quiet'])
    assert status == 1


def test_default_configuration_on_two_years_of_weeks(channels):
    from conftest import make_channel_table
    # default seasonal period 52: 113 weeks are too few cycles for the seasonal check
    config = AnalysisConfig(channels=channels, seed=11)
    result = run_analysis(make_channel_table(seed=13), config)

    assert config.seasonal_period == 52
    for state in list(result.channels.values()) + [result.sales]:
        assert state.verdict.seasonal_strength is None
        assert not state.transformed.seasonal_diff
    assert len(result.aligned) >= 112
    assert result.plan.top_channel() == 'search'


@pytest.mark.parametrize('seed', [0, 3, 5])
def test_channels_without_effect_leave_allocation_undefined(channels, seed):
    from conftest import make_channel_table
    table = make_channel_table(seed=seed, loadings=np.zeros(len(channels)))
    # With the default |t| > 1 step filter, pure-noise steps survive in most
    # samples and yield an arbitrary plan. A strict filter removes them.
    config = AnalysisConfig(channels=channels, seasonal_period=None,
                            n_bootstrap=100, seed=seed, t_threshold=5.0)
    with pytest.raises(DegenerateAllocationError) as excinfo:
        run_analysis(table, config)

    assert excinfo.value.step == 'allocation'
    assert set(excinfo.value.elasticities) == set(channels)
    assert all(e == 0.0 for e in excinfo.value.elasticities.values())
