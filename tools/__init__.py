"""Tools package for contract family assembly."""

from tools.record_normalizer import RecordNormalizer, normalize_record
from tools.hierarchy_builder import ContractArena, HierarchyBuilder, build_hierarchy
from tools.metrics_aggregator import MetricsAggregator, aggregate_metrics
from tools.governance_resolver import (
    GovernanceResolver,
    compare_to_root,
    resolve_inherited_terms,
    build_governance_framework,
)
from tools.family_assembler import FamilyAssembler, assemble_family

__all__ = [
    "RecordNormalizer",
    "normalize_record",
    "ContractArena",
    "HierarchyBuilder",
    "build_hierarchy",
    "MetricsAggregator",
    "aggregate_metrics",
    "GovernanceResolver",
    "compare_to_root",
    "resolve_inherited_terms",
    "build_governance_framework",
    "FamilyAssembler",
    "assemble_family",
]
