"""
Family Assembly Orchestrator - batch pipeline coordinator.

Runs the stages in order for one input batch:
    Normalize -> Build hierarchy -> (Aggregate, Resolve governance) -> Assemble

Key Features:
- Explicit entry point: no module-level caches, every call starts fresh
- Graceful degradation: one broken family never prevents the others
- Anomaly reporting for every recoverable data-integrity condition
"""

import time
from typing import Any, Iterable, List, Mapping, Optional

from loguru import logger

from family_engine.config import EngineConfig, load_config
from family_engine.diagnostics import AnomalyReport
from family_engine.error_handling import FamilyEngineError, FamilyNotFoundError
from family_engine.logging_config import get_family_logger, log_stage_execution
from family_engine.models import (
    AssemblyResult,
    ContractFamily,
    ContractRecord,
    EnhancedContract,
)
from tools.family_assembler import FamilyAssembler
from tools.governance_resolver import GovernanceResolver
from tools.hierarchy_builder import HierarchyBuilder
from tools.record_normalizer import RecordNormalizer


class FamilyAssemblyOrchestrator:
    """
    Coordinates the contract family pipeline for raw record batches.

    The orchestrator holds configuration only. Each call to process()
    builds its own records, trees and report, so repeated calls on the
    same input return identical results.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        """Initialize the orchestrator.

        Args:
            config: Engine configuration (loaded from the environment if not provided)
        """
        self.config = config if config is not None else load_config()
        self.normalizer = RecordNormalizer(self.config)
        self.governance_resolver = GovernanceResolver()

        logger.info(
            "FamilyAssemblyOrchestrator initialized",
            graceful_degradation=self.config.graceful_degradation,
            strategic_threshold=self.config.strategic_value_threshold
        )

    def process(self, raw_records: Iterable[Mapping[str, Any]]) -> AssemblyResult:
        """Turn a batch of raw agreement records into contract families.

        Args:
            raw_records: Raw records in input order

        Returns:
            AssemblyResult with one family per root and every reported anomaly

        Raises:
            FamilyEngineError: If a family fails and graceful degradation is disabled
        """
        start_time = time.perf_counter()
        report = AnomalyReport()

        raw_list = list(raw_records)
        records = self._normalize(raw_list, report)
        roots = self._build(records, report)
        families = self._assemble_all(roots, report)

        logger.info(
            "Contract families assembled",
            record_count=len(records),
            root_count=len(roots),
            family_count=len(families),
            anomaly_count=len(report),
            processing_time_seconds=round(time.perf_counter() - start_time, 4)
        )

        return AssemblyResult(
            families=families,
            anomalies=report.anomalies,
            record_count=len(records),
            root_count=len(roots),
        )

    def annotate(self, family: ContractFamily) -> List[EnhancedContract]:
        """Per-node governance annotation for one assembled family."""
        return self.governance_resolver.annotate_family(family.master_agreement, family.id)

    def family_contracts(
        self,
        raw_records: Iterable[Mapping[str, Any]],
        family_id: str
    ) -> List[EnhancedContract]:
        """Assemble a batch and annotate the nodes of one family.

        Raises:
            FamilyNotFoundError: If no family with that identifier was produced
        """
        result = self.process(raw_records)
        return self.annotate(find_family(result, family_id))

    @log_stage_execution("normalize")
    def _normalize(
        self,
        raw_records: List[Mapping[str, Any]],
        report: AnomalyReport
    ) -> List[ContractRecord]:
        return self.normalizer.normalize_all(raw_records, report)

    @log_stage_execution("build_hierarchy")
    def _build(
        self,
        records: List[ContractRecord],
        report: AnomalyReport
    ) -> List[ContractRecord]:
        return HierarchyBuilder(report).build(records)

    @log_stage_execution("assemble_families")
    def _assemble_all(
        self,
        roots: List[ContractRecord],
        report: AnomalyReport
    ) -> List[ContractFamily]:
        families = []
        for root in roots:
            family_report = AnomalyReport(family_id=root.family_key)
            family_logger = get_family_logger(root.family_key, "assemble")
            try:
                families.append(FamilyAssembler(self.config, family_report).assemble(root))
            except FamilyEngineError as e:
                if not self.config.graceful_degradation:
                    raise
                family_logger.error("Family assembly failed, continuing with remaining families")
                family_report.record(
                    "AssemblyFailed",
                    f"Family could not be assembled: {e}",
                    record_id=root.id,
                    contract_number=root.contract_number
                )
            finally:
                report.extend(family_report)
        return families


def find_family(result: AssemblyResult, family_id: str) -> ContractFamily:
    """Look up a family by identifier in an assembly result.

    Raises:
        FamilyNotFoundError: If the result has no family with that identifier
    """
    for family in result.families:
        if family.id == family_id:
            return family
    raise FamilyNotFoundError(f"Family not found: {family_id}")


def create_orchestrator(config: Optional[EngineConfig] = None) -> FamilyAssemblyOrchestrator:
    """Factory function to create an orchestrator with environment-based configuration.

    Args:
        config: Optional configuration (uses environment variables if not provided)

    Returns:
        Configured FamilyAssemblyOrchestrator instance
    """
    return FamilyAssemblyOrchestrator(config=config)


def build_families(
    raw_records: Iterable[Mapping[str, Any]],
    config: Optional[EngineConfig] = None
) -> AssemblyResult:
    """Assemble contract families from raw records in one call."""
    return create_orchestrator(config).process(raw_records)
