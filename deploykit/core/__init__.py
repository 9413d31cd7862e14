"""
Core Graph Layer

RESPONSIBILITY: Module construction, validation and planning
ALLOWED INPUTS: Action declarations
OUTPUTS: Module, ExecutionPlan

WHAT THIS LAYER MUST NOT DO:
============================
- Perform I/O of any kind
- Emit observability events
- Call executors or touch the journal
"""

from .builder import ModuleBuilder, build_module, validate_module
from .planner import ExecutionPlan, Planner
from .topology import DependencyTopology

__all__ = [
    'ModuleBuilder',
    'build_module',
    'validate_module',
    'ExecutionPlan',
    'Planner',
    'DependencyTopology',
]
