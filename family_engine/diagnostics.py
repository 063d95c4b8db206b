"""Anomaly reporting for hierarchy assembly.

Recoverable data-integrity conditions are collected here instead of being
raised, and each one is logged as it is recorded.
"""

from typing import Dict, List, Optional

from loguru import logger

from family_engine.models import Anomaly, AnomalyKind


# Conditions that are expected in ordinary data and only logged at debug level
_QUIET_KINDS = {"MissingField", "UnparseableDate"}


class AnomalyReport:
    """Ordered collection of anomalies observed during one assembly run."""

    def __init__(self, family_id: Optional[str] = None):
        self.family_id = family_id
        self._anomalies: List[Anomaly] = []

    def record(
        self,
        kind: AnomalyKind,
        detail: str,
        record_id: Optional[str] = None,
        contract_number: Optional[str] = None
    ) -> Anomaly:
        """Record an anomaly and log it.

        Args:
            kind: Anomaly category
            detail: Human-readable description
            record_id: Identifier of the record involved, if any
            contract_number: Contract number involved, if any

        Returns:
            The recorded Anomaly
        """
        anomaly = Anomaly(
            kind=kind,
            detail=detail,
            record_id=record_id,
            contract_number=contract_number
        )
        self._anomalies.append(anomaly)

        bound = logger.bind(
            anomaly_kind=kind,
            family_id=self.family_id or "-",
            record_id=record_id,
            contract_number=contract_number
        )
        if kind in _QUIET_KINDS:
            bound.debug(detail)
        else:
            bound.warning(detail)

        return anomaly

    def extend(self, other: "AnomalyReport") -> None:
        """Append every anomaly of another report, keeping order."""
        self._anomalies.extend(other.anomalies)

    @property
    def anomalies(self) -> List[Anomaly]:
        return list(self._anomalies)

    def by_kind(self, kind: AnomalyKind) -> List[Anomaly]:
        return [a for a in self._anomalies if a.kind == kind]

    def counts(self) -> Dict[str, int]:
        """Number of anomalies per kind, in first-seen order."""
        counts: Dict[str, int] = {}
        for anomaly in self._anomalies:
            counts[anomaly.kind] = counts.get(anomaly.kind, 0) + 1
        return counts

    def __len__(self) -> int:
        return len(self._anomalies)
