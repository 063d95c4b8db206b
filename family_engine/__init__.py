"""Contract Family Engine - hierarchy assembly and family aggregation.

The pipeline entry point lives in family_engine.orchestrator; import it from
there (it depends on the tools package, which depends on this package).
"""

from family_engine.models import (
    Party,
    Milestone,
    CustomProvisions,
    ContractRecord,
    FamilySpan,
    FamilyMetrics,
    LiabilityFramework,
    GovernanceFramework,
    BusinessContext,
    ContractFamily,
    GovernedTerm,
    InheritedTerms,
    EnhancedContract,
    Anomaly,
    AssemblyResult,
)

from family_engine.logging_config import (
    setup_logging,
    get_family_logger,
    log_stage_execution,
    log_tool_execution,
    call_context,
)

from family_engine.error_handling import (
    FamilyEngineError,
    RecordNormalizationError,
    HierarchyBuildError,
    AggregationError,
    GovernanceResolutionError,
    FamilyAssemblyError,
    ConfigurationError,
    FamilyNotFoundError,
    handle_errors,
    graceful_degradation,
)

from family_engine.config import EngineConfig, DEFAULT_CONFIG, load_config
from family_engine.diagnostics import AnomalyReport

__version__ = "0.1.0"

__all__ = [
    # Models
    "Party",
    "Milestone",
    "CustomProvisions",
    "ContractRecord",
    "FamilySpan",
    "FamilyMetrics",
    "LiabilityFramework",
    "GovernanceFramework",
    "BusinessContext",
    "ContractFamily",
    "GovernedTerm",
    "InheritedTerms",
    "EnhancedContract",
    "Anomaly",
    "AssemblyResult",
    # Logging
    "setup_logging",
    "get_family_logger",
    "log_stage_execution",
    "log_tool_execution",
    "call_context",
    # Error Handling
    "FamilyEngineError",
    "RecordNormalizationError",
    "HierarchyBuildError",
    "AggregationError",
    "GovernanceResolutionError",
    "FamilyAssemblyError",
    "ConfigurationError",
    "FamilyNotFoundError",
    "handle_errors",
    "graceful_degradation",
    # Configuration
    "EngineConfig",
    "DEFAULT_CONFIG",
    "load_config",
    "AnomalyReport",
]
