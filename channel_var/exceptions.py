"""
Error taxonomy for the channel VAR pipeline
"""

from typing import Optional


class ChannelVarError(Exception):
    """Base class for all pipeline errors.

    Carries the channel (or variable) and pipeline step that failed so the
    caller can tell where the computation stopped.
    """

    def __init__(self, message: str,
                 channel: Optional[str] = None,
                 step: Optional[str] = None):
        self.channel = channel
        self.step = step
        context = []
        if step:
            context.append(f"step={step}")
        if channel:
            context.append(f"channel={channel}")
        if context:
            message = f"{message} [{', '.join(context)}]"
        super().__init__(message)


class InputError(ChannelVarError):
    """Input table violates a precondition (positivity, alignment, length)"""


class ConfigurationError(ChannelVarError):
    """Requested configuration cannot be estimated or simulated"""


class ModelAssumptionError(ChannelVarError):
    """Model assumptions are violated after transformation or fitting"""


class DegenerateAllocationError(ChannelVarError):
    """No channel has a positive elasticity, so no allocation exists"""

    def __init__(self, message: str, elasticities: Optional[dict] = None, **kwargs):
        self.elasticities = dict(elasticities or {})
        super().__init__(message, **kwargs)


class BootstrapError(ChannelVarError):
    """Too many bootstrap replicates failed to produce confidence bands"""
