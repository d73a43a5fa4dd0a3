"""
Domain models for stackboot.

All models are re-exported here for convenient access:

    from stackboot.core.models import Plan, Step, TemplateSpec, RunReport
"""

from stackboot.core.models.config import BootstrapConfig
from stackboot.core.models.host import HostInfo
from stackboot.core.models.probe import ProbeResult
from stackboot.core.models.report import RunReport, StepOutcome
from stackboot.core.models.step import Plan, Step
from stackboot.core.models.template import ConflictPolicy, EmitReceipt, TemplateSpec

__all__ = [
    # config.py
    "BootstrapConfig",
    # template.py
    "ConflictPolicy",
    "EmitReceipt",
    # host.py
    "HostInfo",
    # step.py
    "Plan",
    # probe.py
    "ProbeResult",
    # report.py
    "RunReport",
    "Step",
    "StepOutcome",
    "TemplateSpec",
]
