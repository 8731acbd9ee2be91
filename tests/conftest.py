import numpy as np
import pandas as pd
import pytest

CHANNELS = ['search', 'social', 'display', 'video', 'audio', 'print']

# Lag-one effect of each channel on log sales
SALES_LOADINGS = np.array([0.9, 0.4, 0.2, 0.0, 0.0, 0.0])


def simulate_var1(coef, sd, n, seed, intercept=None, burn=100):
    """Draw n observations from x_t = c + A x_{t-1} + e_t with independent normal shocks"""
    rng = np.random.default_rng(seed)
    coef = np.asarray(coef, dtype=float)
    k = coef.shape[0]
    intercept = np.zeros(k) if intercept is None else np.asarray(intercept, dtype=float)
    x = np.zeros((n + burn, k))
    for t in range(1, n + burn):
        x[t] = intercept + coef @ x[t - 1] + rng.normal(0.0, sd, size=k)
    return x[burn:]


def channel_coefficients(loadings=SALES_LOADINGS):
    k = len(CHANNELS) + 1
    coef = np.zeros((k, k))
    for i in range(len(CHANNELS)):
        coef[i, i] = 0.3
    coef[-1, :-1] = loadings
    coef[-1, -1] = 0.2
    return coef


def make_channel_table(n_weeks=113, seed=7, loadings=SALES_LOADINGS):
    """Weekly spend and sales levels driven by a stationary log-VAR(1)"""
    k = len(CHANNELS) + 1
    sd = np.array([0.1] * len(CHANNELS) + [0.05])
    logs = simulate_var1(channel_coefficients(loadings), sd, n_weeks, seed)
    means = np.array([8.0, 7.5, 7.0, 6.5, 6.0, 5.5, 11.0])
    levels = np.exp(logs + means[:k])
    table = pd.DataFrame(levels, columns=CHANNELS + ['sales'])
    table.index = pd.RangeIndex(1, n_weeks + 1, name='week')
    return table


@pytest.fixture
def channels():
    return list(CHANNELS)


@pytest.fixture
def channel_table():
    return make_channel_table()


@pytest.fixture
def stationary_frame():
    """Three-variable stationary VAR(1) sample in logs"""
    coef = np.array([[0.5, 0.0, 0.0],
                     [0.3, 0.4, 0.0],
                     [0.2, 0.3, 0.3]])
    values = simulate_var1(coef, [1.0, 1.0, 1.0], 400, seed=11, intercept=[0.1, 0.2, 0.3])
    return pd.DataFrame(values, columns=['a', 'b', 'c'],
                        index=pd.RangeIndex(1, 401, name='week'))
