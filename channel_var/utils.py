"""
Utility functions for channel VAR analysis
"""

import json
import logging
import sys
from contextlib import redirect_stdout
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np
import pandas as pd
from tabulate import tabulate


class ReportStream:
    """Echo console output into a report file, flushing after each write"""
    def __init__(self, console, report):
        self.console = console
        self.report = report

    def write(self, text: str) -> int:
        self.console.write(text)
        self.report.write(text)
        self.flush()
        return len(text)

    def flush(self):
        self.console.flush()
        self.report.flush()


class OutputCapture:
    """Copy everything printed inside the block to a report file"""
    def __init__(self, filename: str, console=None):
        self.filename = filename
        self.console = console
        self._report = None
        self._redirect = None

    def __enter__(self):
        self._report = open(self.filename, 'w')
        stream = ReportStream(self.console or sys.stdout, self._report)
        self._redirect = redirect_stdout(stream)
        self._redirect.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self._redirect.__exit__(exc_type, exc_val, exc_tb)
        finally:
            self._report.close()
        return False


def setup_logger(name: str = 'channel_var',
                 level: str = 'INFO',
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up logger for channel VAR analysis

    Parameters:
    -----------
    name : str
        Logger name; module loggers live under 'channel_var'
    level : str
        Logging level
    log_file : str, optional
        File to save logs

    Returns:
    --------
    logging.Logger
        Configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level))

    # Repeated calls must not stack handlers
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    # Console handler
    console_handler = logging.StreamHandler()
    console_format = logging.Formatter('%(levelname)s - %(message)s')
    console_handler.setFormatter(console_format)
    logger.addHandler(console_handler)

    # File handler if specified
    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_format = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        file_handler.setFormatter(file_format)
        logger.addHandler(file_handler)

    return logger


def save_results(results: Dict,
                 filename: str,
                 format: str = 'txt') -> None:
    """
    Save analysis results to file

    Parameters:
    -----------
    results : dict
        Results dictionary (e.g. AnalysisResult.to_dict())
    filename : str
        Output filename
    format : str
        Output format ('txt', 'json', 'csv')
    """
    if format == 'txt':
        with open(filename, 'w') as f:
            f.write("="*80 + "\n")
            f.write("CHANNEL VAR ANALYSIS RESULTS\n")
            f.write(f"Generated: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}\n")
            f.write("="*80 + "\n\n")

            _write_section(f, results)

    elif format == 'json':
        with open(filename, 'w') as f:
            json.dump(_clean_for_json(results), f, indent=2)

    elif format == 'csv':
        # Allocation table only
        metrics = _extract_key_metrics(results)
        pd.DataFrame(metrics).to_csv(filename, index=False)

    else:
        raise ValueError(f"Unknown format: {format}")


def _write_section(f, d: Dict, indent: int = 0):
    """Write nested results as an indented key: value outline"""
    pad = " " * indent
    for key, value in d.items():
        if value is None:
            continue
        if isinstance(value, pd.DataFrame):
            f.write(f"{pad}{key}:\n")
            for line in value.to_string(float_format=lambda v: f"{v:.6g}").splitlines():
                f.write(f"{pad}  {line}\n")
        elif isinstance(value, dict):
            f.write(f"{pad}{key}:\n")
            _write_section(f, value, indent + 2)
        elif isinstance(value, (float, np.floating)):
            f.write(f"{pad}{key}: {float(value):.6g}\n")
        elif isinstance(value, (list, tuple, np.ndarray)):
            items = ", ".join(f"{v:.6g}" if isinstance(v, (float, np.floating)) else str(v)
                              for v in value)
            f.write(f"{pad}{key}: [{items}]\n")
        else:
            f.write(f"{pad}{key}: {value}\n")


def _clean_for_json(obj: Any) -> Any:
    """Clean object for JSON serialization"""
    if isinstance(obj, dict):
        return {str(k): _clean_for_json(v) for k, v in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [_clean_for_json(item) for item in obj]
    elif isinstance(obj, pd.DataFrame):
        return _clean_for_json(obj.to_dict())
    elif isinstance(obj, pd.Series):
        return _clean_for_json(obj.to_list())
    elif isinstance(obj, np.ndarray):
        return _clean_for_json(obj.tolist())
    elif isinstance(obj, (np.bool_, bool)):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, (np.floating, float)):
        value = float(obj)
        return value if np.isfinite(value) else None
    elif hasattr(obj, '__dict__'):
        return str(obj)
    else:
        return obj


def _extract_key_metrics(results: Dict) -> list:
    """One row per channel: elasticity, share and Granger p-values"""
    rows = []
    channels = results.get('channels', {})
    for name, state in channels.items():
        granger = state.get('granger') or {}
        rows.append({
            'channel': name,
            'elasticity': state.get('elasticity'),
            'share': state.get('share'),
            'granger_to_sales_p': (granger.get('to_sales') or {}).get('p_value'),
            'granger_from_sales_p': (granger.get('from_sales') or {}).get('p_value')
        })
    return rows


def format_results_table(results: Dict) -> str:
    """
    Format results as a nice table string

    Parameters:
    -----------
    results : dict
        Output of AnalysisResult.to_dict()

    Returns:
    --------
    str
        Formatted tables
    """
    lines = []
    lines.append("="*60)
    lines.append("SUMMARY OF KEY RESULTS")
    lines.append("="*60)

    channels = results.get('channels', {})
    sales = results.get('sales', {})

    # Stationarity
    rows = []
    for name, state in list(channels.items()) + ([(sales.get('name'), sales)] if sales else []):
        verdict = state.get('verdict') or {}
        tests = verdict.get('tests', {})
        rows.append([
            name,
            f"{tests.get('adf', {}).get('p_value', float('nan')):.3f}",
            f"{tests.get('pp', {}).get('p_value', float('nan')):.3f}",
            f"{tests.get('kpss', {}).get('p_value', float('nan')):.3f}",
            'n/a' if verdict.get('seasonal_strength') is None else f"{verdict['seasonal_strength']:.3f}",
            'Yes' if verdict.get('needs_first_diff') else 'No',
            'Yes' if verdict.get('needs_seasonal_diff') else 'No'
        ])
    if rows:
        lines.append("\nStationarity:")
        lines.append(tabulate(rows, headers=['Series', 'ADF p', 'PP p', 'KPSS p', 'Seasonal F',
                                             'Diff', 'Seasonal diff'], tablefmt='simple'))

    model = results.get('model', {})
    if model:
        lines.append(f"\nVAR({model.get('lag_order')}) on {model.get('nobs')} observations, "
                     f"AIC {model.get('aic', float('nan')):.4f}")

    # Granger
    rows = []
    for name, state in channels.items():
        granger = state.get('granger') or {}
        to_sales = granger.get('to_sales') or {}
        from_sales = granger.get('from_sales') or {}
        rows.append([
            name,
            f"{to_sales.get('p_value', float('nan')):.4f}",
            '*' if to_sales.get('rejects_null') else '',
            f"{from_sales.get('p_value', float('nan')):.4f}",
            '*' if from_sales.get('rejects_null') else ''
        ])
    if rows:
        lines.append("\nGranger causality (p-values):")
        lines.append(tabulate(rows, headers=['Channel', '-> sales', 'Sig', 'sales ->', 'Sig'],
                              tablefmt='simple'))

    # Allocation
    rows = [[name, f"{state.get('elasticity', float('nan')):.4f}",
             f"{100 * (state.get('share') or 0.0):.1f}%"]
            for name, state in channels.items()]
    if rows:
        lines.append("\nLong-run elasticity and budget share:")
        lines.append(tabulate(rows, headers=['Channel', 'Elasticity', 'Share'], tablefmt='simple'))

    diagnostics = results.get('diagnostics', {})
    if 'overall_assessment' in diagnostics:
        assessment = diagnostics['overall_assessment']
        lines.append(f"\nModel Diagnostics:")
        lines.append(f"  Issues: {', '.join(assessment['issues_detected']) if assessment['issues_detected'] else 'None'}")
        lines.append(f"  Quality: {assessment['model_quality']}")

    return "\n".join(lines)


def print_banner(text: str, width: int = 80, char: str = "="):
    """Print a formatted banner"""
    print(char * width)
    print(text.center(width))
    print(char * width)
