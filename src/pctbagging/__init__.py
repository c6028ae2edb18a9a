# pctbagging/__init__.py
"""
pctbagging: Partially Consolidated Tree-Bagging on C4.5 trees (scikit-learn style).

Exports:
    - PCTBClassifier
    - PCTBConfig, ConfigurationError
    - PriorityCriteria, SearchAlgorithm, BudgetMode
    - TrainingEvent
"""
from .builder import TrainingEvent
from .classifier import PCTBClassifier
from .config import BudgetMode, ConfigurationError, PCTBConfig
from .frontier import PriorityCriteria, SearchAlgorithm

__all__ = [
    "PCTBClassifier",
    "PCTBConfig",
    "ConfigurationError",
    "PriorityCriteria",
    "SearchAlgorithm",
    "BudgetMode",
    "TrainingEvent",
]
__version__ = "0.1.0"
