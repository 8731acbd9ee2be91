import numpy as np
import pandas as pd
import pytest

from channel_var.exceptions import InputError, ModelAssumptionError
from channel_var.stationarity import (
    StationarityTransformer,
    TransformedSeries,
    UnitRootTest,
    align_transformed,
    difference,
    majority_vote
)


def _levels(log_values):
    return pd.Series(np.exp(log_values), index=pd.RangeIndex(1, len(log_values) + 1, name='week'))


@pytest.fixture
def transformer():
    return StationarityTransformer(seasonal_period=None)


@pytest.mark.parametrize('verdicts, expected', [
    ((True, True, True), True),
    ((True, True, False), True),
    ((True, False, True), True),
    ((False, True, True), True),
    ((True, False, False), False),
    ((False, False, True), False),
    ((False, False, False), False),
])
def test_majority_vote(verdicts, expected):
    votes = dict(zip([UnitRootTest.ADF, UnitRootTest.PP, UnitRootTest.KPSS], verdicts))
    assert majority_vote(votes) is expected


def test_difference_lengths_and_index():
    s = pd.Series(np.arange(1.0, 21.0) ** 2, index=range(1, 21))
    assert difference(s).equals(s)

    first = difference(s, first_diff=True)
    assert len(first) == 19
    assert first.index[0] == 2
    assert first.iloc[0] == 4.0 - 1.0

    both = difference(s, first_diff=True, seasonal_diff=True, seasonal_period=4)
    assert len(both) == 20 - 1 - 4
    assert both.index[0] == 6

    with pytest.raises(ValueError):
        difference(s, seasonal_diff=True)


def test_stationary_series_left_in_levels(transformer):
    rng = np.random.default_rng(1)
    x = np.zeros(200)
    for t in range(1, 200):
        x[t] = 0.3 * x[t - 1] + rng.normal(0, 0.1)
    transformed, verdict = transformer.transform(_levels(x + 5.0), 'tv')

    assert not verdict.needs_first_diff
    assert not verdict.needs_seasonal_diff
    assert verdict.seasonal_strength is None
    assert len(transformed) == 200
    np.testing.assert_allclose(transformed.values.to_numpy(), x + 5.0)
    assert set(verdict.tests) == {UnitRootTest.ADF, UnitRootTest.PP, UnitRootTest.KPSS}
    assert verdict.tests[UnitRootTest.KPSS].null_hypothesis == 'stationary'


def test_random_walk_is_first_differenced(transformer):
    rng = np.random.default_rng(2)
    walk = np.cumsum(rng.normal(0, 0.05, size=200)) + 6.0
    transformed, verdict = transformer.transform(_levels(walk), 'search')

    assert verdict.needs_first_diff
    assert transformed.first_diff
    assert len(transformed) == 199
    assert transformed.values.index[0] == 2
    np.testing.assert_allclose(transformed.values.to_numpy(), np.diff(walk))
    assert not verdict.recheck_non_stationary


def test_stationarization_is_idempotent(transformer):
    rng = np.random.default_rng(2)
    walk = np.cumsum(rng.normal(0, 0.05, size=200)) + 6.0
    transformed, _ = transformer.transform(_levels(walk), 'search')

    again, verdict = transformer.transform(np.exp(transformed.values), 'search')
    assert not verdict.needs_first_diff
    assert not verdict.needs_seasonal_diff
    np.testing.assert_allclose(again.values.to_numpy(), transformed.values.to_numpy())


def test_constant_series_differences_to_zero():
    diffed = difference(pd.Series([3.0] * 10), first_diff=True)
    assert len(diffed) == 9
    assert (diffed == 0.0).all()


def test_integrated_of_order_two_fails_recheck(transformer):
    rng = np.random.default_rng(3)
    i2 = np.cumsum(np.cumsum(rng.normal(0, 0.001, size=300))) + 4.0
    with pytest.raises(ModelAssumptionError) as excinfo:
        transformer.transform(_levels(i2), 'print')
    assert excinfo.value.channel == 'print'
    assert excinfo.value.step == 'stationarity_recheck'


@pytest.mark.parametrize('values', [
    [1.0] * 30,
    [1.0, 2.0, 0.0] * 10,
    [1.0, -2.0, 3.0] * 10,
    [1.0, np.nan, 3.0] * 10,
])
def test_invalid_input_rejected(transformer, values):
    with pytest.raises(InputError):
        transformer.transform(pd.Series(values), 'x')


def test_short_series_rejected(transformer):
    with pytest.raises(InputError):
        transformer.transform(pd.Series(np.linspace(1.0, 2.0, 10)), 'x')


def test_seasonal_strength_detects_strong_cycle():
    rng = np.random.default_rng(4)
    n, period = 120, 12
    t = np.arange(n)
    seasonal = np.sin(2 * np.pi * t / period) + rng.normal(0, 0.05, size=n)
    noise = rng.normal(0, 1.0, size=n)

    transformer = StationarityTransformer(seasonal_period=period)
    assert transformer.seasonal_strength(pd.Series(seasonal)) > 0.9
    assert transformer.seasonal_strength(pd.Series(noise)) < 0.64


def test_seasonal_check_needs_three_cycles():
    transformer = StationarityTransformer(seasonal_period=52)
    assert transformer.min_seasonal_cycles == 3
    # 113 weekly observations are barely two yearly cycles
    assert transformer.seasonal_strength(pd.Series(np.linspace(1, 2, 113))) is None
    assert transformer.seasonal_strength(pd.Series(np.linspace(1, 2, 155))) is None
    assert transformer.seasonal_strength(pd.Series(np.linspace(1, 2, 156))) is not None
    assert StationarityTransformer(seasonal_period=None).seasonal_strength(
        pd.Series(np.linspace(1, 2, 300))) is None


def test_cycle_requirement_is_configurable():
    transformer = StationarityTransformer(seasonal_period=52, min_seasonal_cycles=2)
    assert transformer.seasonal_strength(pd.Series(np.linspace(1, 2, 113))) is not None


def test_short_sample_skips_seasonal_differencing(caplog):
    rng = np.random.default_rng(6)
    x = np.zeros(113)
    for t in range(1, 113):
        x[t] = 0.3 * x[t - 1] + rng.normal(0, 0.1)
    transformer = StationarityTransformer()
    with caplog.at_level('INFO', logger='channel_var.stationarity'):
        transformed, verdict = transformer.transform(_levels(x + 7.0), 'display')

    assert verdict.seasonal_strength is None
    assert not verdict.needs_seasonal_diff
    assert not transformed.seasonal_diff
    assert 'seasonal check skipped' in caplog.text


def test_strongly_seasonal_series_is_seasonally_differenced():
    rng = np.random.default_rng(5)
    n, period = 144, 12
    t = np.arange(n)
    log_values = 5.0 + 0.5 * np.sin(2 * np.pi * t / period) + rng.normal(0, 0.05, size=n)
    transformer = StationarityTransformer(seasonal_period=period)
    transformed, verdict = transformer.transform(_levels(log_values), 'video')

    assert verdict.seasonal_strength > 0.64
    assert verdict.needs_seasonal_diff
    assert transformed.seasonal_period == period
    expected = n - period - (1 if verdict.needs_first_diff else 0)
    assert len(transformed) == expected


def test_transform_all_keeps_columns(transformer, channel_table):
    out = transformer.transform_all(channel_table[['search', 'sales']])
    assert list(out) == ['search', 'sales']
    for name, (series, verdict) in out.items():
        assert series.name == name == verdict.name


def test_align_transformed_drops_leading_rows():
    idx = pd.RangeIndex(1, 11)
    a = TransformedSeries('a', pd.Series(np.arange(10.0), index=idx), False, False, None)
    b = TransformedSeries('b', pd.Series(np.arange(10.0), index=idx).iloc[1:], True, False, None)
    frame = align_transformed({'a': a, 'b': b}, order=['b', 'a'])
    assert list(frame.columns) == ['b', 'a']
    assert len(frame) == 9
    assert frame.index[0] == 2


def test_align_transformed_no_overlap():
    a = TransformedSeries('a', pd.Series([1.0, 2.0], index=[1, 2]), False, False, None)
    b = TransformedSeries('b', pd.Series([1.0, 2.0], index=[3, 4]), False, False, None)
    with pytest.raises(InputError):
        align_transformed({'a': a, 'b': b})
