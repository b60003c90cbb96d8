from .chain import StepsChain
from .model import Experiment, ExecutionContext, ParentExperiment, SourceFile, TargetVariable
from .runner import ChainTask, run_chains

__version__ = "2.1.1"

__all__ = [
    "StepsChain",
    "ChainTask",
    "run_chains",
    "Experiment",
    "ExecutionContext",
    "ParentExperiment",
    "SourceFile",
    "TargetVariable",
]
