"""Family metrics aggregation.

Walks an assembled contract tree (root first, pre-order) and computes the
family-wide totals, the effective/expiration date span and the composite
risk level.

Composite risk tiers:
- Critical: a government contract anywhere in the family, or more
  distinct compliance flags than the configured limit
- High: total family value at or above the high-risk threshold
- Medium: total family value above the medium-risk threshold
- Low: everything else
"""

from datetime import date, datetime
from typing import Iterable, List, Optional

from loguru import logger

from family_engine.config import DEFAULT_CONFIG, EngineConfig
from family_engine.diagnostics import AnomalyReport
from family_engine.error_handling import AggregationError, handle_errors
from family_engine.logging_config import log_tool_execution
from family_engine.models import ContractRecord, FamilyMetrics, FamilySpan
from tools.record_normalizer import NOT_SPECIFIED


SOW_TYPES = ("Sow", "SOW")
CHANGE_ORDER_TYPE = "ChangeOrder"

DATE_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%B %d, %Y", "%b %d, %Y", "%d %B %Y")


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse an ISO or common written date. Returns None when unparseable."""
    if not value:
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def collect_family(root: ContractRecord) -> List[ContractRecord]:
    """Every node of the tree, root first, in depth-first pre-order."""
    nodes = []
    stack = [root]
    while stack:
        node = stack.pop()
        nodes.append(node)
        stack.extend(reversed(node.children))
    return nodes


def collect_compliance_flags(nodes: Iterable[ContractRecord]) -> List[str]:
    """Deduplicated union of compliance requirements, first-seen order."""
    flags: List[str] = []
    for node in nodes:
        for requirement in node.compliance_requirements or []:
            if requirement not in flags:
                flags.append(requirement)
    return flags


def has_government_contract(
    nodes: Iterable[ContractRecord],
    config: EngineConfig = DEFAULT_CONFIG
) -> bool:
    """True if any node is flagged or carries a government compliance requirement.

    Markers match case-insensitively, however the configuration spells them.
    """
    markers = [marker.lower() for marker in config.government_markers]
    for node in nodes:
        if node.custom_provisions.government_contract:
            return True
        for requirement in node.compliance_requirements or []:
            lowered = requirement.lower()
            if any(marker in lowered for marker in markers):
                return True
    return False


def classify_family_risk(
    total_value: float,
    government: bool,
    flag_count: int,
    config: EngineConfig = DEFAULT_CONFIG
) -> str:
    """Composite family risk level. Compliance signals win over value tiers."""
    if government or flag_count > config.critical_compliance_flag_count:
        return "Critical"
    if total_value >= config.high_risk_threshold:
        return "High"
    if total_value > config.medium_risk_threshold:
        return "Medium"
    return "Low"


class MetricsAggregator:
    """Computes FamilyMetrics for one contract tree."""

    def __init__(
        self,
        config: EngineConfig = DEFAULT_CONFIG,
        report: Optional[AnomalyReport] = None
    ):
        self.config = config
        self.report = report

    @log_tool_execution("metrics_aggregator")
    @handle_errors(AggregationError)
    def aggregate(self, root: ContractRecord) -> FamilyMetrics:
        """Aggregate metrics over the root and all of its descendants.

        Args:
            root: Root record with its subtree attached

        Returns:
            FamilyMetrics snapshot
        """
        nodes = collect_family(root)

        total_value = sum(node.total_value or 0 for node in nodes)
        active_sows = sum(
            1 for node in nodes if node.type in SOW_TYPES and node.status == "Active"
        )
        change_orders = sum(1 for node in nodes if node.type == CHANGE_ORDER_TYPE)

        flags = collect_compliance_flags(nodes)
        risk_level = classify_family_risk(
            total_value,
            has_government_contract(nodes, self.config),
            len(flags),
            self.config
        )

        metrics = FamilyMetrics(
            total_family_value=float(total_value),
            total_contracts=len(nodes),
            active_sow_count=active_sows,
            total_change_orders=change_orders,
            family_span=self._family_span(nodes),
            avg_risk_level=risk_level,
        )

        logger.debug(
            "Family metrics aggregated",
            root_id=root.id,
            total_contracts=metrics.total_contracts,
            total_family_value=metrics.total_family_value,
            risk_level=risk_level
        )
        return metrics

    def _family_span(self, nodes: List[ContractRecord]) -> FamilySpan:
        starts = []
        ends = []
        for node in nodes:
            start = self._parse(node, "effective_date", node.effective_date)
            if start is not None:
                starts.append(start)
            if node.expiration_date:
                end = self._parse(node, "expiration_date", node.expiration_date)
                if end is not None:
                    ends.append(end)

        return FamilySpan(
            start=min(starts).isoformat() if starts else None,
            end=max(ends).isoformat() if ends else None,
        )

    def _parse(self, node: ContractRecord, field: str, value: Optional[str]) -> Optional[date]:
        parsed = parse_date(value)
        if parsed is None and value and value != NOT_SPECIFIED and self.report is not None:
            self.report.record(
                "UnparseableDate",
                f"Field '{field}' value '{value}' is not a date, excluded from family span",
                record_id=node.id,
                contract_number=node.contract_number
            )
        return parsed


# Tool function for pipeline integration
def aggregate_metrics(
    root: ContractRecord,
    config: EngineConfig = DEFAULT_CONFIG,
    report: Optional[AnomalyReport] = None
) -> FamilyMetrics:
    """Aggregate family metrics for a root record."""
    return MetricsAggregator(config, report).aggregate(root)
