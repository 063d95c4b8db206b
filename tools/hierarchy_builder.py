"""Hierarchy builder for normalized contract records.

Links records into parent/child trees using the contract-number key each
child declares as its parent. Edges are collected in an arena keyed by
record identifier, and the finished trees are exported as fresh immutable
records, so the input records are never modified.

Structural problems are reported on an AnomalyReport and never raised:
- UnresolvedParentReference: the parent key matches no record; the record becomes a root
- CycleDetected: a contract number recurs in its own ancestor chain; the branch is dropped
- AmbiguousParentClaim: two records in different lineages own the same key; first claim wins
- DuplicateIdentifier: a second record reuses an identifier; it is ignored
"""

from collections import defaultdict
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

import msgspec
from loguru import logger

from family_engine.diagnostics import AnomalyReport
from family_engine.error_handling import HierarchyBuildError, handle_errors
from family_engine.logging_config import log_tool_execution
from family_engine.models import ContractRecord


TYPE_ORDER = (
    "Msa", "Sow", "ServicesAgreement", "Consulting", "Nda", "ChangeOrder",
    "License", "Purchase", "Lease", "Amendment", "Other",
)
_TYPE_RANK = {contract_type: rank for rank, contract_type in enumerate(TYPE_ORDER)}


def sort_key(record: ContractRecord) -> Tuple[int, str]:
    """Type precedence first (unlisted types last), then title."""
    return _TYPE_RANK.get(record.type, len(TYPE_ORDER)), record.title


class ContractArena:
    """Records addressed by identifier plus the parent/child edges between them."""

    def __init__(self):
        self._records: Dict[str, ContractRecord] = {}
        self._children: Dict[str, List[str]] = defaultdict(list)
        self._parent: Dict[str, str] = {}

    def add(self, record: ContractRecord) -> bool:
        """Add a record. Returns False if the identifier is already taken."""
        if record.id in self._records:
            return False
        self._records[record.id] = record
        return True

    def link(self, parent_id: str, child_id: str) -> None:
        """Attach child to parent. A record can have only one parent."""
        if child_id in self._parent:
            raise HierarchyBuildError(
                f"Record {child_id} is already attached to {self._parent[child_id]}"
            )
        self._parent[child_id] = parent_id
        self._children[parent_id].append(child_id)

    def get(self, record_id: str) -> ContractRecord:
        return self._records[record_id]

    def ids(self) -> List[str]:
        return list(self._records)

    def export(self, record_id: str) -> ContractRecord:
        """Immutable copy of a record with its linked subtree attached.

        Copies are built bottom-up from an explicit stack, so tree depth is
        bounded only by the number of records.
        """
        exported: Dict[str, ContractRecord] = {}
        stack = [(record_id, False)]
        while stack:
            current, expanded = stack.pop()
            child_ids = self._children.get(current, [])
            if not expanded:
                stack.append((current, True))
                stack.extend((child_id, False) for child_id in child_ids)
                continue
            children = sorted((exported.pop(child_id) for child_id in child_ids), key=sort_key)
            exported[current] = msgspec.structs.replace(self._records[current], children=children)
        return exported[record_id]

    def __contains__(self, record_id: str) -> bool:
        return record_id in self._records

    def __len__(self) -> int:
        return len(self._records)


class HierarchyBuilder:
    """Builds contract trees from a flat sequence of records."""

    def __init__(self, report: Optional[AnomalyReport] = None):
        """Initialize the builder.

        Args:
            report: Anomaly report to record structural problems on
                (a private one is created when omitted)
        """
        self.report = report if report is not None else AnomalyReport()

    @log_tool_execution("hierarchy_builder")
    @handle_errors(HierarchyBuildError)
    def build(self, records: Iterable[ContractRecord]) -> List[ContractRecord]:
        """Link records into trees and return the roots.

        Args:
            records: Normalized records in input order

        Returns:
            Root records, each carrying its attached subtree, in type/title order
        """
        arena = ContractArena()
        for record in records:
            if not arena.add(record):
                self.report.record(
                    "DuplicateIdentifier",
                    "Identifier already used by an earlier record, record ignored",
                    record_id=record.id,
                    contract_number=record.contract_number
                )

        owners = self._index_owners(arena)
        children_by_key = self._index_children(arena)
        root_ids = self._find_roots(arena, owners)
        root_ids.sort(key=lambda record_id: sort_key(arena.get(record_id)))

        attached: Set[str] = set()
        dropped: Set[str] = set()
        claims: Dict[str, str] = {}

        for root_id in root_ids:
            self._link_subtree(arena, root_id, children_by_key, attached, dropped, claims)

        self._report_unreachable(arena, owners, attached, dropped)

        roots = [arena.export(root_id) for root_id in root_ids]

        logger.info(
            "Hierarchy built",
            record_count=len(arena),
            root_count=len(roots),
            attached_count=len(attached),
            excluded_count=len(arena) - len(attached)
        )
        return roots

    def _index_owners(self, arena: ContractArena) -> Dict[str, List[str]]:
        """contract number -> identifiers of the records carrying it."""
        owners: Dict[str, List[str]] = defaultdict(list)
        for record_id in arena.ids():
            number = arena.get(record_id).contract_number
            if number:
                owners[number].append(record_id)
        return owners

    def _index_children(self, arena: ContractArena) -> Dict[str, List[str]]:
        """parent key -> identifiers of the records declaring it, in input order."""
        children: Dict[str, List[str]] = defaultdict(list)
        for record_id in arena.ids():
            parent_key = arena.get(record_id).parent_contract_id
            if parent_key:
                children[parent_key].append(record_id)
        return children

    def _find_roots(
        self,
        arena: ContractArena,
        owners: Dict[str, List[str]]
    ) -> List[str]:
        roots = []
        for record_id in arena.ids():
            record = arena.get(record_id)
            parent_key = record.parent_contract_id
            if not parent_key:
                roots.append(record_id)
            elif parent_key not in owners:
                self.report.record(
                    "UnresolvedParentReference",
                    f"Parent contract number '{parent_key}' matches no record, treated as a root",
                    record_id=record_id,
                    contract_number=record.contract_number
                )
                roots.append(record_id)
        return roots

    def _link_subtree(
        self,
        arena: ContractArena,
        root_id: str,
        children_by_key: Dict[str, List[str]],
        attached: Set[str],
        dropped: Set[str],
        claims: Dict[str, str]
    ) -> None:
        """Depth-first attach walk from one root.

        Each stack frame holds a linked record, the contract numbers of its
        lineage and an iterator over its remaining candidate children.
        """
        root_children = self._visit(arena, root_id, (), children_by_key, attached, dropped, claims)
        if root_children is None:
            return

        stack = [(root_id, self._lineage(arena, root_id, ()), root_children)]
        while stack:
            parent_id, path, pending = stack[-1]
            child_id = next(pending, None)
            if child_id is None:
                stack.pop()
                continue
            if child_id in attached or child_id in dropped:
                continue

            grandchildren = self._visit(
                arena, child_id, path, children_by_key, attached, dropped, claims
            )
            if grandchildren is None:
                continue
            arena.link(parent_id, child_id)
            stack.append((child_id, self._lineage(arena, child_id, path), grandchildren))

    def _lineage(
        self,
        arena: ContractArena,
        record_id: str,
        path: Tuple[str, ...]
    ) -> Tuple[str, ...]:
        key = arena.get(record_id).contract_number
        return path + (key,) if key else path

    def _visit(
        self,
        arena: ContractArena,
        record_id: str,
        path: Tuple[str, ...],
        children_by_key: Dict[str, List[str]],
        attached: Set[str],
        dropped: Set[str],
        claims: Dict[str, str]
    ) -> Optional[Iterator[str]]:
        """Accept a record into the walk.

        Returns an iterator over the records claiming it as parent, or None
        if the cycle guard rejects the record.
        """
        record = arena.get(record_id)
        key = record.contract_number

        if key and key in path:
            chain = " -> ".join(path + (key,))
            self.report.record(
                "CycleDetected",
                f"Contract number recurs in its ancestor chain ({chain}), branch dropped",
                record_id=record_id,
                contract_number=key
            )
            dropped.add(record_id)
            return None

        attached.add(record_id)

        if not key or key not in children_by_key:
            return iter(())

        owner = claims.setdefault(key, record_id)
        if owner != record_id:
            self.report.record(
                "AmbiguousParentClaim",
                f"Contract number '{key}' already claimed by record {owner}, children stay with the first claim",
                record_id=record_id,
                contract_number=key
            )
            return iter(())

        return iter(children_by_key[key])

    def _report_unreachable(
        self,
        arena: ContractArena,
        owners: Dict[str, List[str]],
        attached: Set[str],
        dropped: Set[str]
    ) -> None:
        """Report records that no root reaches, grouping parent-reference cycles."""
        parent_of: Dict[str, str] = {}
        for record_id in arena.ids():
            parent_key = arena.get(record_id).parent_contract_id
            if parent_key and parent_key in owners:
                parent_of[record_id] = owners[parent_key][0]

        reported_cycles: Set[frozenset] = set()

        for record_id in arena.ids():
            if record_id in attached or record_id in dropped:
                continue

            chain: List[str] = []
            position: Dict[str, int] = {}
            current: Optional[str] = record_id
            while (
                current is not None
                and current not in position
                and current not in attached
                and current not in dropped
            ):
                position[current] = len(chain)
                chain.append(current)
                current = parent_of.get(current)

            record = arena.get(record_id)

            if current is not None and current in position:
                cycle = chain[position[current]:]
                members = frozenset(cycle)
                if members not in reported_cycles:
                    reported_cycles.add(members)
                    numbers = [arena.get(i).contract_number or i for i in cycle]
                    numbers.append(numbers[0])
                    self.report.record(
                        "CycleDetected",
                        f"Parent references form a cycle ({' -> '.join(numbers)}), records excluded",
                        record_id=cycle[0],
                        contract_number=arena.get(cycle[0]).contract_number
                    )
                if record_id not in members:
                    self.report.record(
                        "CycleDetected",
                        "Record excluded: its parent chain leads into a cycle",
                        record_id=record_id,
                        contract_number=record.contract_number
                    )
            elif current is not None and current in dropped:
                self.report.record(
                    "CycleDetected",
                    "Record excluded: an ancestor branch was dropped by the cycle guard",
                    record_id=record_id,
                    contract_number=record.contract_number
                )
            else:
                self.report.record(
                    "AmbiguousParentClaim",
                    "Record orphaned: its parent key was claimed by another lineage",
                    record_id=record_id,
                    contract_number=record.contract_number
                )


# Tool function for pipeline integration
def build_hierarchy(
    records: Iterable[ContractRecord],
    report: Optional[AnomalyReport] = None
) -> List[ContractRecord]:
    """Build contract trees and return the roots.

    Args:
        records: Normalized contract records
        report: Optional anomaly report

    Returns:
        Root records with children attached
    """
    return HierarchyBuilder(report).build(records)
