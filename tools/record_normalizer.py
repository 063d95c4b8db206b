"""Record normalization tool for raw agreement data.

Turns one loosely-typed agreement record (as exported by the contract
repository) into a canonical ContractRecord. Normalization never fails:
absent or unusable values fall back to documented defaults.
"""

import hashlib
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Tuple

import msgspec
from loguru import logger

from family_engine.config import DEFAULT_CONFIG, EngineConfig
from family_engine.diagnostics import AnomalyReport
from family_engine.error_handling import RecordNormalizationError, graceful_degradation
from family_engine.logging_config import log_tool_execution
from family_engine.models import ContractRecord, CustomProvisions, Milestone


UNKNOWN_PARTY = "Unknown Party"
NOT_SPECIFIED = "Not specified"
DEFAULT_CONTRACT_MANAGER = "Contract Administrator"
DEFAULT_TERMINATION = "Standard termination terms apply"
DEFAULT_CONFIDENTIALITY = "Standard confidentiality terms apply"
DEFAULT_INDEMNIFICATION = "Standard indemnification terms"
GOVERNMENT_REQUIREMENT = "Government Contract Requirements"

PAYMENT_TERMS = {
    "THIRTY_DAYS": "Net 30 days",
    "FORTY_FIVE_DAYS": "Net 45 days",
    "SIXTY_DAYS": "Net 60 days",
    "OTHER": "As per agreement terms",
}

CONTRACT_NUMBER_PATTERN = re.compile(r"(MSA|SOW|CN|CO|NDA|SLA|CONS|PA|CLIENT)-(\d+)")

RISK_LEVELS = ("Low", "Medium", "High", "Critical")

CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "JPY": "¥"}

# custom_provisions keys with a dedicated field on CustomProvisions
_KNOWN_CUSTOM_KEYS = {
    "c_ParentContractNumber": "parent_contract_number",
    "c_ParentContractEffectiveDate": "parent_contract_effective_date",
    "c_MSANumber": "msa_number",
    "c_MSAEffectiveDate": "msa_effective_date",
}


def format_payment_terms(code: Optional[str]) -> str:
    """Map a payment-terms code to its label. Unknown codes pass through."""
    if not code:
        return NOT_SPECIFIED
    return PAYMENT_TERMS.get(code, code)


def extract_contract_number(file_name: Optional[str]) -> Optional[str]:
    """Extract a contract number such as ``SOW-12`` from a file name."""
    if not file_name:
        return None
    match = CONTRACT_NUMBER_PATTERN.search(file_name)
    if not match:
        return None
    return f"{match.group(1)}-{match.group(2)}"


def bucket_risk_level(
    total_value: Optional[float],
    config: EngineConfig = DEFAULT_CONFIG
) -> str:
    """Default per-record risk level derived from the agreement value."""
    if total_value and total_value > config.record_high_risk_threshold:
        return "High"
    if total_value and total_value > config.record_medium_risk_threshold:
        return "Medium"
    return "Low"


def format_currency(amount: float, currency: Optional[str]) -> str:
    code = (currency or "USD").upper()
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol:
        return f"{symbol}{amount:,.2f}"
    return f"{code} {amount:,.2f}"


def _text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value).strip()
    return text or None


def _amount(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        amount = float(value)
    elif isinstance(value, str):
        try:
            amount = float(value.replace(",", "").replace("$", "").strip())
        except ValueError:
            return None
    else:
        return None
    if math.isnan(amount) or math.isinf(amount):
        return None
    return amount


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _string_list(value: Any) -> Optional[List[str]]:
    if not isinstance(value, (list, tuple)):
        return None
    items = [str(v).strip() for v in value if v is not None and str(v).strip()]
    return items or None


def _stable_id(raw: Mapping[str, Any]) -> str:
    """Deterministic identifier for records that arrive without one."""
    try:
        payload = msgspec.json.encode(raw, order="sorted")
    except (TypeError, msgspec.EncodeError):
        payload = repr(sorted(raw.items(), key=lambda item: str(item[0]))).encode()
    return "anon-" + hashlib.sha1(payload).hexdigest()[:12]


def _placeholder_record(
    normalizer: "RecordNormalizer",
    raw: Any,
    report: Optional[AnomalyReport] = None
) -> ContractRecord:
    """Bare record used when a raw record cannot be normalized at all."""
    source = raw if isinstance(raw, Mapping) else {}
    record_id = _text(source.get("id")) or _stable_id({"repr": repr(raw)})
    if report is not None:
        report.record(
            "MissingField",
            "Raw record could not be normalized, placeholder used",
            record_id=record_id
        )
    return ContractRecord(
        id=record_id,
        type="Other",
        title=_text(source.get("title")) or "Untitled Agreement",
        first_party=UNKNOWN_PARTY,
        third_party=UNKNOWN_PARTY,
        effective_date=NOT_SPECIFIED,
        governing_law=NOT_SPECIFIED,
        payment_terms=NOT_SPECIFIED,
        termination_clause=DEFAULT_TERMINATION,
        confidentiality_clause=DEFAULT_CONFIDENTIALITY,
        indemnification_clause=DEFAULT_INDEMNIFICATION,
        status="Draft",
        risk_level="Low",
    )


class RecordNormalizer:
    """Normalizer for raw agreement records."""

    def __init__(self, config: EngineConfig = DEFAULT_CONFIG):
        """Initialize the normalizer.

        Args:
            config: Engine configuration supplying default values and thresholds
        """
        self.config = config

    @log_tool_execution("record_normalizer")
    @graceful_degradation(fallback_func=_placeholder_record)
    def normalize(
        self,
        raw: Mapping[str, Any],
        report: Optional[AnomalyReport] = None
    ) -> ContractRecord:
        """Normalize one raw agreement record.

        Args:
            raw: Raw record (JSON-shaped mapping)
            report: Optional anomaly report receiving MissingField entries

        Returns:
            Canonical ContractRecord
        """
        if not isinstance(raw, Mapping):
            raise RecordNormalizationError(
                f"Raw record must be a mapping, got {type(raw).__name__}"
            )

        provisions = _mapping(raw.get("provisions"))
        custom = _mapping(raw.get("custom_provisions"))

        record_id = _text(raw.get("id"))
        if record_id is None:
            record_id = _stable_id(raw)
            self._missing(report, record_id, "id", record_id)

        def default(field: str, value: Optional[str], fallback: str) -> str:
            if value is None:
                self._missing(report, record_id, field, fallback)
                return fallback
            return value

        first_party, third_party = self._party_names(raw.get("parties"), record_id, report)

        file_name = _text(raw.get("file_name"))
        contract_number = _text(raw.get("contract_number")) or extract_contract_number(file_name)

        total_value = _amount(provisions.get("total_agreement_value"))
        currency = (
            _text(provisions.get("total_agreement_value_currency_code"))
            or self.config.default_currency
        )

        liability_cap = _amount(provisions.get("liability_cap_fixed_amount"))
        liability_cap_currency = _text(provisions.get("liability_cap_currency_code"))

        termination_period = _text(provisions.get("termination_period_for_convenience"))
        termination_clause = (
            f"Termination with {termination_period} notice"
            if termination_period else DEFAULT_TERMINATION
        )
        indemnification_clause = (
            f"Liability cap: {format_currency(liability_cap, liability_cap_currency)}"
            if liability_cap else DEFAULT_INDEMNIFICATION
        )

        payment_code = _text(provisions.get("payment_terms_due_date"))
        if payment_code is None:
            self._missing(report, record_id, "payment_terms", NOT_SPECIFIED)

        custom_provisions = self._custom_provisions(custom)

        compliance = _string_list(raw.get("compliance_requirements")) or []
        if custom_provisions.government_contract and GOVERNMENT_REQUIREMENT not in compliance:
            compliance.append(GOVERNMENT_REQUIREMENT)

        risk_level = _text(raw.get("risk_level"))
        if risk_level not in RISK_LEVELS:
            risk_level = bucket_risk_level(total_value, self.config)

        record = ContractRecord(
            id=record_id,
            type=default("type", _text(raw.get("type")), "Other"),
            title=default("title", _text(raw.get("title")), "Untitled Agreement"),
            first_party=first_party,
            third_party=third_party,
            effective_date=default(
                "effective_date", _text(provisions.get("effective_date")), NOT_SPECIFIED
            ),
            expiration_date=(
                _text(provisions.get("expiration_date"))
                or _text(provisions.get("renewal_notice_date"))
            ),
            governing_law=default(
                "governing_law", _text(provisions.get("governing_law")), NOT_SPECIFIED
            ),
            jurisdiction=_text(provisions.get("jurisdiction")),
            payment_terms=format_payment_terms(payment_code),
            termination_clause=termination_clause,
            confidentiality_clause=DEFAULT_CONFIDENTIALITY,
            indemnification_clause=indemnification_clause,
            parent_contract_id=custom_provisions.parent_contract_number,
            contract_number=contract_number,
            status=self._status(raw.get("status")),
            total_value=total_value,
            currency=currency,
            risk_level=risk_level,
            compliance_requirements=compliance or None,
            key_milestones=self._milestones(raw.get("key_milestones")),
            file_name=file_name,
            industry=_text(raw.get("industry")) or self.config.default_industry,
            contract_manager=_text(raw.get("contract_manager")) or DEFAULT_CONTRACT_MANAGER,
            business_unit=_text(raw.get("business_unit")) or self._business_unit(raw.get("category")),
            renewal_notice=_text(raw.get("renewal_notice")),
            performance_metrics=_string_list(raw.get("performance_metrics")),
            deliverables=_string_list(raw.get("deliverables")),
            project_code=_text(raw.get("project_code")),
            liability_cap=liability_cap,
            liability_cap_currency=liability_cap_currency,
            custom_provisions=custom_provisions,
        )

        logger.trace(
            "Record normalized",
            record_id=record.id,
            contract_number=record.contract_number,
            parent=record.parent_contract_id
        )
        return record

    def normalize_all(
        self,
        raws: List[Mapping[str, Any]],
        report: Optional[AnomalyReport] = None
    ) -> List[ContractRecord]:
        """Normalize a batch of raw records, preserving input order."""
        records = [self.normalize(raw, report) for raw in raws]
        logger.info("Records normalized", record_count=len(records))
        return records

    def _missing(
        self,
        report: Optional[AnomalyReport],
        record_id: str,
        field: str,
        fallback: str
    ) -> None:
        if report is not None:
            report.record(
                "MissingField",
                f"Field '{field}' missing, defaulted to '{fallback}'",
                record_id=record_id
            )

    def _party_names(
        self,
        parties: Any,
        record_id: str,
        report: Optional[AnomalyReport]
    ) -> Tuple[str, str]:
        """First and third party names, the latter falling back to the former."""
        names = []
        if isinstance(parties, (list, tuple)):
            for party in parties[:2]:
                names.append(_text(_mapping(party).get("name_in_agreement")))

        first = names[0] if names else None
        second = names[1] if len(names) > 1 else None

        if first is None:
            self._missing(report, record_id, "first_party", UNKNOWN_PARTY)
        if second is None and first is None:
            self._missing(report, record_id, "third_party", UNKNOWN_PARTY)

        return first or UNKNOWN_PARTY, second or first or UNKNOWN_PARTY

    def _status(self, status: Any) -> str:
        text = _text(status)
        return "Active" if text == "COMPLETE" else "Draft"

    def _business_unit(self, category: Any) -> str:
        if _text(category) == "BusinessServices":
            return "Business Services Division"
        return "General Division"

    def _custom_provisions(self, custom: Mapping[str, Any]) -> CustomProvisions:
        known: Dict[str, Optional[str]] = {}
        extra: Dict[str, Any] = {}
        government = False

        for key, value in custom.items():
            if key in _KNOWN_CUSTOM_KEYS:
                known[_KNOWN_CUSTOM_KEYS[key]] = _text(value)
            elif key == "c_GovernmentContract":
                government = value is True or _text(value) == "True"
            else:
                extra[str(key)] = value

        return CustomProvisions(government_contract=government, extra=extra, **known)

    def _milestones(self, value: Any) -> Optional[List[Milestone]]:
        if not isinstance(value, (list, tuple)):
            return None
        milestones = []
        for item in value:
            if not isinstance(item, Mapping):
                continue
            milestones.append(
                Milestone(
                    date=_text(item.get("date")) or NOT_SPECIFIED,
                    description=_text(item.get("description")) or "",
                    completed=bool(item.get("completed", False)),
                )
            )
        return milestones or None


# Tool function for pipeline integration
def normalize_record(
    raw: Mapping[str, Any],
    report: Optional[AnomalyReport] = None
) -> ContractRecord:
    """Normalize a single raw record with the default configuration.

    Args:
        raw: Raw agreement record

    Returns:
        Canonical ContractRecord
    """
    return RecordNormalizer().normalize(raw, report)
