"""
Data Models - msgspec Structs for contract records and derived families.

These models define the data passed between the pipeline stages:
- ContractRecord is the canonical, immutable unit produced by normalization
- ContractFamily and its snapshots are derived at assembly time
- Output structs encode with camelCase keys for downstream consumers
"""

from typing import Any, Dict, List, Literal, Optional
from msgspec import Struct, field


ContractStatus = Literal["Active", "Expired", "Draft", "Terminated"]
RiskLevel = Literal["Low", "Medium", "High", "Critical"]
RelationshipType = Literal[
    "Strategic Partnership", "Vendor", "Service Provider", "Government Contract"
]
TermSource = Literal["establishes", "inherited", "overridden"]
DocumentLevel = Literal["MSA", "SOW", "ChangeOrder", "Amendment", "Other"]
AnomalyKind = Literal[
    "MissingField",
    "UnresolvedParentReference",
    "CycleDetected",
    "AmbiguousParentClaim",
    "UnparseableDate",
    "DuplicateIdentifier",
    "AssemblyFailed",
]

# Known contract type tags. Unknown tags are kept verbatim on the record.
CONTRACT_TYPES = (
    "Msa", "MSA", "ServicesAgreement", "Sow", "SOW", "Nda", "ChangeOrder",
    "Consulting", "License", "Purchase", "PurchaseOrder", "Lease", "Amendment",
    "PrimeContract", "PrimeConstruction", "Subcontract", "SubcontractMSA",
    "FlowdownAmendment", "MasterAffiliation", "FacilityAgreement",
    "PhysicianAgreement", "CompensationSchedule", "SLA", "TradeAgreement",
    "ConstructionAmendment", "EnergyMSA", "ProjectAgreement", "WorkOrder",
    "FieldTicket", "MasterTradingAgreement", "ProductSchedule",
    "TransactionConfirmation", "Novation", "Other",
)


class Party(Struct, rename="camel"):
    """Contracting entity as named in the agreement."""
    id: str
    name_in_agreement: str


class Milestone(Struct, rename="camel"):
    """Dated deliverable checkpoint."""
    date: str
    description: str
    completed: bool = False


class CustomProvisions(Struct, kw_only=True, rename="camel"):
    """Known custom provisions plus an extension map for anything else."""
    parent_contract_number: Optional[str] = None
    parent_contract_effective_date: Optional[str] = None
    msa_number: Optional[str] = None
    msa_effective_date: Optional[str] = None
    government_contract: bool = False
    extra: Dict[str, Any] = {}


class ContractRecord(Struct, frozen=True, kw_only=True, rename="camel"):
    """Canonical contract record. Children are attached only on export."""
    id: str
    type: str
    title: str
    first_party: str
    third_party: str
    effective_date: str
    governing_law: str
    payment_terms: str
    termination_clause: str
    confidentiality_clause: str
    indemnification_clause: str
    status: ContractStatus
    expiration_date: Optional[str] = None
    jurisdiction: Optional[str] = None
    total_value: Optional[float] = None
    currency: Optional[str] = None
    parent_contract_id: Optional[str] = None
    contract_number: Optional[str] = None
    children: List["ContractRecord"] = []
    risk_level: Optional[RiskLevel] = None
    compliance_requirements: Optional[List[str]] = None
    key_milestones: Optional[List[Milestone]] = None
    file_name: Optional[str] = None
    industry: Optional[str] = None
    contract_manager: Optional[str] = None
    business_unit: Optional[str] = None
    renewal_notice: Optional[str] = None
    performance_metrics: Optional[List[str]] = None
    deliverables: Optional[List[str]] = None
    project_code: Optional[str] = None
    liability_cap: Optional[float] = None
    liability_cap_currency: Optional[str] = None
    custom_provisions: CustomProvisions = field(default_factory=CustomProvisions)

    @property
    def family_key(self) -> str:
        """Contract number when present, identifier otherwise."""
        return self.contract_number or self.id


class FamilySpan(Struct, rename="camel"):
    """Earliest effective date to latest expiration date."""
    start: Optional[str] = None
    end: Optional[str] = None


class FamilyMetrics(Struct, kw_only=True, rename="camel"):
    total_family_value: float
    total_contracts: int
    active_sow_count: int
    total_change_orders: int
    family_span: FamilySpan
    avg_risk_level: RiskLevel


class LiabilityFramework(Struct, kw_only=True, rename="camel"):
    cap_amount: Optional[float] = None
    cap_currency: Optional[str] = None
    cap_duration: Optional[str] = None


class GovernanceFramework(Struct, kw_only=True, rename="camel"):
    """Governance terms established by the family root."""
    governing_law: str
    jurisdiction: Optional[str]
    default_payment_terms: str
    compliance_flags: List[str]
    termination_rights: Optional[str] = None
    liability_framework: Optional[LiabilityFramework] = None


class BusinessContext(Struct, kw_only=True, rename="camel"):
    parties: List[Party]
    industry_category: str
    relationship_type: RelationshipType
    business_unit: Optional[str] = None
    contract_manager: Optional[str] = None


class ContractFamily(Struct, kw_only=True, rename="camel"):
    """Root agreement, its subtree and the snapshots derived from it."""
    id: str
    master_agreement: ContractRecord
    family_metrics: FamilyMetrics
    governance_framework: GovernanceFramework
    business_context: BusinessContext


class GovernedTerm(Struct, rename="camel"):
    value: Optional[str]
    source: TermSource


class InheritedTerms(Struct, kw_only=True, rename="camel"):
    """Per-node comparison of governed fields against the family root."""
    governing_law: GovernedTerm
    jurisdiction: GovernedTerm
    payment_terms: GovernedTerm
    uses_parent_governance: bool


class ProjectExecution(Struct, kw_only=True, rename="camel"):
    deliverables: Optional[List[str]] = None
    milestones: Optional[List[Milestone]] = None
    performance_metrics: Optional[List[str]] = None
    specific_compliance: Optional[List[str]] = None


class ContractRelationships(Struct, kw_only=True, rename="camel"):
    parent_contract_number: Optional[str] = None
    child_contract_numbers: List[str] = []


class EnhancedContract(Struct, kw_only=True, rename="camel"):
    """Display annotation for one node of a family."""
    contract_id: str
    title: str
    type: str
    family_id: str
    depth: int
    document_level: DocumentLevel
    inherited_terms: InheritedTerms
    contract_relationships: ContractRelationships
    project_execution: Optional[ProjectExecution] = None


class Anomaly(Struct, kw_only=True, rename="camel"):
    """Recoverable data-integrity condition observed during assembly."""
    kind: AnomalyKind
    detail: str
    record_id: Optional[str] = None
    contract_number: Optional[str] = None


class AssemblyResult(Struct, kw_only=True, rename="camel"):
    """Families produced from one input batch plus what was reported."""
    families: List[ContractFamily]
    anomalies: List[Anomaly] = []
    record_count: int = 0
    root_count: int = 0
