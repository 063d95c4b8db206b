"""Governance resolution for contract families.

Each node's governing law, jurisdiction and payment terms are compared to
the family root's: the root establishes them, a matching node inherits
them, and a differing node overrides them.
"""

from typing import List, Optional

from loguru import logger

from family_engine.error_handling import GovernanceResolutionError, handle_errors
from family_engine.logging_config import log_tool_execution
from family_engine.models import (
    ContractRecord,
    ContractRelationships,
    EnhancedContract,
    GovernanceFramework,
    GovernedTerm,
    InheritedTerms,
    LiabilityFramework,
    ProjectExecution,
)
from tools.metrics_aggregator import collect_compliance_flags, collect_family


GOVERNED_FIELDS = ("governing_law", "jurisdiction", "payment_terms")

DOCUMENT_LEVELS = {
    "Msa": "MSA",
    "MSA": "MSA",
    "Sow": "SOW",
    "SOW": "SOW",
    "ChangeOrder": "ChangeOrder",
    "Amendment": "Amendment",
}

# Types whose annotation carries project execution details
EXECUTION_TYPES = ("Sow", "SOW", "ChangeOrder")


def is_same_record(node: ContractRecord, root: ContractRecord) -> bool:
    return node is root or node.id == root.id


def compare_to_root(
    node_value: Optional[str],
    root_value: Optional[str],
    is_root: bool
) -> str:
    """Classify one governed value against the family root's value."""
    if is_root:
        return "establishes"
    if node_value == root_value:
        return "inherited"
    return "overridden"


class GovernanceResolver:
    """Resolves inherited governance for the nodes of one family."""

    @log_tool_execution("governance_resolver")
    def resolve(self, node: ContractRecord, root: ContractRecord) -> InheritedTerms:
        """Compare a node's governed fields to the root's.

        Args:
            node: Any record of the family (the root included)
            root: Family root

        Returns:
            InheritedTerms with one classification per governed field
        """
        is_root = is_same_record(node, root)
        terms = {}
        for field in GOVERNED_FIELDS:
            value = getattr(node, field)
            terms[field] = GovernedTerm(
                value=value,
                source=compare_to_root(value, getattr(root, field), is_root),
            )

        return InheritedTerms(
            uses_parent_governance=any(t.source == "inherited" for t in terms.values()),
            **terms
        )

    @log_tool_execution("governance_framework")
    @handle_errors(GovernanceResolutionError)
    def framework(self, root: ContractRecord) -> GovernanceFramework:
        """Family-level governance: the root's terms plus all compliance flags.

        Args:
            root: Family root with its subtree attached

        Returns:
            GovernanceFramework snapshot
        """
        liability = None
        if root.liability_cap is not None:
            liability = LiabilityFramework(
                cap_amount=root.liability_cap,
                cap_currency=root.liability_cap_currency or root.currency,
            )

        return GovernanceFramework(
            governing_law=root.governing_law,
            jurisdiction=root.jurisdiction,
            default_payment_terms=root.payment_terms,
            termination_rights=root.termination_clause,
            compliance_flags=collect_compliance_flags(collect_family(root)),
            liability_framework=liability,
        )

    @log_tool_execution("governance_annotation")
    @handle_errors(GovernanceResolutionError)
    def annotate_family(self, root: ContractRecord, family_id: str) -> List[EnhancedContract]:
        """Per-node governance annotation for display, root first.

        Args:
            root: Family root with its subtree attached
            family_id: Identifier of the family the nodes belong to

        Returns:
            One EnhancedContract per node, in pre-order
        """
        annotations: List[EnhancedContract] = []
        stack = [(root, 0)]
        while stack:
            node, depth = stack.pop()
            annotations.append(self._annotate(node, root, family_id, depth))
            stack.extend((child, depth + 1) for child in reversed(node.children))

        logger.debug(
            "Family annotated",
            family_id=family_id,
            node_count=len(annotations),
            overridden_count=sum(
                1 for a in annotations
                if "overridden" in (
                    a.inherited_terms.governing_law.source,
                    a.inherited_terms.jurisdiction.source,
                    a.inherited_terms.payment_terms.source,
                )
            )
        )
        return annotations

    def _annotate(
        self,
        node: ContractRecord,
        root: ContractRecord,
        family_id: str,
        depth: int
    ) -> EnhancedContract:
        execution = None
        if node.type in EXECUTION_TYPES:
            execution = ProjectExecution(
                deliverables=node.deliverables,
                milestones=node.key_milestones,
                performance_metrics=node.performance_metrics,
                specific_compliance=node.compliance_requirements,
            )

        return EnhancedContract(
            contract_id=node.id,
            title=node.title,
            type=node.type,
            family_id=family_id,
            depth=depth,
            document_level=DOCUMENT_LEVELS.get(node.type, "Other"),
            inherited_terms=self.resolve(node, root),
            contract_relationships=ContractRelationships(
                parent_contract_number=node.parent_contract_id,
                child_contract_numbers=[child.family_key for child in node.children],
            ),
            project_execution=execution,
        )


# Tool functions for pipeline integration
def resolve_inherited_terms(node: ContractRecord, root: ContractRecord) -> InheritedTerms:
    """Compare a node's governed fields to its family root."""
    return GovernanceResolver().resolve(node, root)


def build_governance_framework(root: ContractRecord) -> GovernanceFramework:
    """Governance framework for a family root."""
    return GovernanceResolver().framework(root)
