"""Family assembly.

Composes one ContractFamily from a root record with its subtree attached:
metrics, governance framework and business context are all derived from
the tree at assembly time.
"""

from typing import Optional

from loguru import logger

from family_engine.config import DEFAULT_CONFIG, EngineConfig
from family_engine.diagnostics import AnomalyReport
from family_engine.error_handling import FamilyAssemblyError, handle_errors
from family_engine.logging_config import log_tool_execution
from family_engine.models import (
    BusinessContext,
    ContractFamily,
    ContractRecord,
    FamilyMetrics,
    Party,
)
from tools.governance_resolver import GovernanceResolver
from tools.metrics_aggregator import MetricsAggregator, collect_family, has_government_contract


SERVICE_PROVIDER_INDUSTRIES = ("Procurement", "Manufacturing")


def determine_relationship_type(
    metrics: FamilyMetrics,
    government: bool,
    industry: Optional[str],
    config: EngineConfig = DEFAULT_CONFIG
) -> str:
    """Relationship between the parties, derived from the family as a whole."""
    if government:
        return "Government Contract"
    if metrics.total_family_value > config.strategic_value_threshold:
        return "Strategic Partnership"
    if industry in SERVICE_PROVIDER_INDUSTRIES:
        return "Service Provider"
    return "Vendor"


class FamilyAssembler:
    """Builds ContractFamily snapshots from assembled trees."""

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        report: Optional[AnomalyReport] = None
    ):
        """Initialize the assembler.

        Args:
            config: Engine configuration (risk and strategic thresholds)
            report: Optional anomaly report for conditions found while aggregating
        """
        self.config = config
        self.metrics_aggregator = MetricsAggregator(config, report)
        self.governance_resolver = GovernanceResolver()

    @log_tool_execution("family_assembler")
    @handle_errors(FamilyAssemblyError)
    def assemble(self, root: ContractRecord) -> ContractFamily:
        """Assemble the family rooted at a record.

        Args:
            root: Root record with its full subtree attached

        Returns:
            ContractFamily with metrics, governance framework and business context
        """
        family_id = root.family_key
        metrics = self.metrics_aggregator.aggregate(root)
        governance = self.governance_resolver.framework(root)
        government = has_government_contract(collect_family(root), self.config)
        industry = root.industry or self.config.default_industry

        business_context = BusinessContext(
            parties=[
                Party(id="party1", name_in_agreement=root.first_party),
                Party(id="party2", name_in_agreement=root.third_party),
            ],
            business_unit=root.business_unit,
            contract_manager=root.contract_manager,
            industry_category=industry,
            relationship_type=determine_relationship_type(
                metrics, government, industry, self.config
            ),
        )

        family = ContractFamily(
            id=family_id,
            master_agreement=root,
            family_metrics=metrics,
            governance_framework=governance,
            business_context=business_context,
        )

        logger.info(
            "Family assembled",
            family_id=family_id,
            total_contracts=metrics.total_contracts,
            risk_level=metrics.avg_risk_level,
            relationship_type=business_context.relationship_type
        )
        return family


# Tool function for pipeline integration
def assemble_family(
    root: ContractRecord,
    config: EngineConfig = DEFAULT_CONFIG,
    report: Optional[AnomalyReport] = None
) -> ContractFamily:
    """Assemble a ContractFamily for a root record."""
    return FamilyAssembler(config, report).assemble(root)
