"""
Residual diagnostics for fitted VAR models

Informational only: a failing diagnostic is recorded in the returned
dictionary, never raised.
"""

import logging
from typing import Dict, List

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.stats.stattools import jarque_bera

from .var_models import FittedVarModel

logger = logging.getLogger(__name__)


def residual_serial_correlation(residuals: pd.Series,
                                lags: List[int] = None,
                                significance_level: float = 0.10) -> Dict:
    """
    Ljung-Box test for serial correlation in one equation's residuals

    Parameters:
    -----------
    residuals : pd.Series
        Equation residuals
    lags : list
        Lags to test (default 4 and 8, capped by sample size)
    significance_level : float
        Conservative level, 0.10 by default

    Returns:
    --------
    dict
        Test results
    """
    try:
        if lags is None:
            lags = [lag for lag in (4, 8) if lag < len(residuals) // 2] or [1]
        table = acorr_ljungbox(residuals, lags=lags, return_df=True)
        has_serial_correlation = bool((table['lb_pvalue'] < significance_level).any())
        return {
            'test_type': 'Ljung-Box',
            'lags': list(lags),
            'min_pvalue': float(table['lb_pvalue'].min()),
            'max_statistic': float(table['lb_stat'].max()),
            'has_serial_correlation': has_serial_correlation,
            'interpretation': f'Serial correlation detected (p < {significance_level})' if has_serial_correlation
                              else f'No serial correlation (p >= {significance_level})'
        }
    except Exception as e:
        return {'error': f'Error in serial correlation test: {str(e)}'}


def residual_normality(residuals: pd.Series) -> Dict:
    """Jarque-Bera normality test"""
    try:
        jb_stat, jb_pvalue = jarque_bera(residuals)[:2]
        return {
            'test_type': 'Jarque-Bera',
            'statistic': float(jb_stat),
            'pvalue': float(jb_pvalue),
            'is_normal': bool(jb_pvalue > 0.05),
            'interpretation': 'Residuals are normal' if jb_pvalue > 0.05 else 'Residuals are not normal'
        }
    except Exception as e:
        return {'error': f'Error in normality test: {str(e)}'}


def residual_summary(model: FittedVarModel) -> pd.DataFrame:
    rows = []
    for name in model.names:
        resid = model.residuals[name].to_numpy()
        rows.append({
            'variable': name,
            'mean': float(resid.mean()),
            'std': float(resid.std(ddof=1)),
            'min': float(resid.min()),
            'max': float(resid.max()),
            'skew': float(stats.skew(resid)),
            'kurtosis': float(stats.kurtosis(resid))
        })
    return pd.DataFrame(rows).set_index('variable')


def whiteness(model: FittedVarModel, nlags: int = None) -> Dict:
    """Joint Portmanteau test on all residual autocorrelations up to nlags"""
    try:
        if model.results is None:
            return {'error': 'Model carries no statsmodels results'}
        nlags = nlags or max(model.lag_order + 1, min(10, model.nobs // 5))
        result = model.results.test_whiteness(nlags=nlags)
        return {
            'nlags': nlags,
            'statistic': float(result.test_statistic),
            'pvalue': float(result.pvalue),
            'df': int(result.df),
            'is_white': bool(result.pvalue >= 0.05)
        }
    except Exception as e:
        return {'error': f'Error in whiteness test: {str(e)}'}


def run_var_diagnostics(model: FittedVarModel) -> Dict:
    """
    Per-equation and joint residual diagnostics plus stability

    Returns:
    --------
    dict
        'equations', 'residual_summary', 'whiteness', 'stable',
        'overall_assessment'
    """
    equations = {}
    for name in model.names:
        resid = model.residuals[name]
        equations[name] = {
            'serial_correlation': residual_serial_correlation(resid),
            'normality': residual_normality(resid)
        }

    stable = model.is_stable()
    white = whiteness(model)

    issues = []
    for name, diag in equations.items():
        if diag['serial_correlation'].get('has_serial_correlation'):
            issues.append(f'{name} serial correlation')
        if diag['normality'].get('is_normal') is False:
            issues.append(f'{name} non-normality')
    if white.get('is_white') is False:
        issues.append('residuals not jointly white')
    if not stable:
        issues.append('unstable VAR')

    if not stable:
        model_quality = 'Poor - unstable dynamics'
    elif len(issues) == 0:
        model_quality = 'Good'
    elif len(issues) <= 2:
        model_quality = 'Acceptable with minor issues'
    else:
        model_quality = 'Questionable - Multiple issues'

    if issues:
        logger.warning("VAR diagnostics flagged: %s", ', '.join(issues))

    summary = residual_summary(model)
    return {
        'equations': equations,
        'residual_summary': summary,
        'whiteness': white,
        'stable': stable,
        'max_root_modulus': float(np.max(np.abs(np.linalg.eigvals(model.companion_matrix())))),
        'overall_assessment': {
            'issues_detected': issues,
            'n_issues': len(issues),
            'model_quality': model_quality
        }
    }
