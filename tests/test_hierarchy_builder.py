import pytest

from family_engine.diagnostics import AnomalyReport
from family_engine.error_handling import HierarchyBuildError
from tools.hierarchy_builder import ContractArena, HierarchyBuilder, build_hierarchy, sort_key
from tools.metrics_aggregator import collect_family


def _depths(root, depth=0):
    yield root.id, depth
    for child in root.children:
        yield from _depths(child, depth + 1)


def _all_ids(roots):
    return [node.id for root in roots for node in collect_family(root)]


def test_scenario_chain(normalize_all, scenario_agreements):
    roots = build_hierarchy(normalize_all(scenario_agreements))

    assert [root.contract_number for root in roots] == ["MSA-1"]
    assert dict(_depths(roots[0])) == {"rec-msa": 0, "rec-sow": 1, "rec-co": 2}


def test_input_records_are_not_modified(normalize_all, scenario_agreements):
    records = normalize_all(scenario_agreements)
    build_hierarchy(records)
    assert all(record.children == [] for record in records)


def test_every_linked_record_appears_exactly_once(make_agreement, normalize_all):
    raws = [make_agreement("rec-root", "MSA-1")]
    for i in range(1, 6):
        raws.append(make_agreement(f"rec-sow-{i}", f"SOW-{i}", agreement_type="Sow", parent="MSA-1"))
        for j in range(1, 4):
            raws.append(
                make_agreement(
                    f"rec-co-{i}-{j}", f"CO-{i}{j}", agreement_type="ChangeOrder", parent=f"SOW-{i}"
                )
            )
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    ids = _all_ids(roots)
    assert sorted(ids) == sorted(raw["id"] for raw in raws)
    assert len(ids) == len(set(ids))
    depths = dict(_depths(roots[0]))
    assert depths["rec-sow-3"] == 1
    assert depths["rec-co-4-2"] == 2
    assert len(report) == 0


def test_children_sorted_by_type_then_title(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1"),
        make_agreement("c1", "CO-1", agreement_type="ChangeOrder", title="B change", parent="MSA-1"),
        make_agreement("c2", "SOW-2", agreement_type="Sow", title="Z work", parent="MSA-1"),
        make_agreement("c3", "SOW-3", agreement_type="Sow", title="A work", parent="MSA-1"),
        make_agreement("c4", "PA-4", agreement_type="Weird", title="0 first title", parent="MSA-1"),
        make_agreement("c5", "NDA-5", agreement_type="Nda", title="Secrets", parent="MSA-1"),
    ]
    roots = build_hierarchy(normalize_all(raws))

    assert [child.id for child in roots[0].children] == ["c3", "c2", "c5", "c1", "c4"]


def test_roots_sorted_by_type_then_title(make_agreement, normalize_all):
    raws = [
        make_agreement("nda", "NDA-1", agreement_type="Nda"),
        make_agreement("msa-b", "MSA-2", title="Beta"),
        make_agreement("msa-a", "MSA-1", title="Alpha"),
    ]
    roots = build_hierarchy(normalize_all(raws))
    assert [root.id for root in roots] == ["msa-a", "msa-b", "nda"]


def test_unresolved_parent_becomes_root(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1"),
        make_agreement("orphan", "SOW-9", agreement_type="Sow", parent="MSA-404"),
    ]
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert sorted(root.id for root in roots) == ["orphan", "root"]
    unresolved = report.by_kind("UnresolvedParentReference")
    assert [a.record_id for a in unresolved] == ["orphan"]
    assert "MSA-404" in unresolved[0].detail


def test_mutual_parent_cycle_is_excluded(make_agreement, normalize_all):
    raws = [
        make_agreement("healthy", "MSA-1"),
        make_agreement("a", "SOW-10", agreement_type="Sow", parent="SOW-11"),
        make_agreement("b", "SOW-11", agreement_type="Sow", parent="SOW-10"),
    ]
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert [root.id for root in roots] == ["healthy"]
    assert "a" not in _all_ids(roots)
    assert "b" not in _all_ids(roots)
    assert len(report.by_kind("CycleDetected")) == 1


def test_descendant_of_cycle_is_reported(make_agreement, normalize_all):
    raws = [
        make_agreement("a", "SOW-10", agreement_type="Sow", parent="SOW-11"),
        make_agreement("b", "SOW-11", agreement_type="Sow", parent="SOW-10"),
        make_agreement("c", "CO-12", agreement_type="ChangeOrder", parent="SOW-10"),
    ]
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert roots == []
    cycles = report.by_kind("CycleDetected")
    assert len(cycles) == 2
    assert "c" in [a.record_id for a in cycles]


def test_self_reference_is_a_cycle(make_agreement, normalize_all):
    raws = [make_agreement("loop", "MSA-7", parent="MSA-7")]
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert roots == []
    assert [a.record_id for a in report.by_kind("CycleDetected")] == ["loop"]


def test_contract_number_recurring_in_lineage_is_dropped(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1"),
        make_agreement("sow", "SOW-1", agreement_type="Sow", parent="MSA-1"),
        make_agreement("repeat", "MSA-1", agreement_type="Amendment", parent="SOW-1"),
    ]
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert _all_ids(roots) == ["root", "sow"]
    cycles = report.by_kind("CycleDetected")
    assert [a.record_id for a in cycles] == ["repeat"]
    assert "MSA-1 -> SOW-1 -> MSA-1" in cycles[0].detail


def test_ambiguous_claim_keeps_first_claimant(make_agreement, normalize_all):
    raws = [
        make_agreement("second", "MSA-5", title="Beta"),
        make_agreement("first", "MSA-5", title="Alpha"),
        make_agreement("child", "SOW-5", agreement_type="Sow", parent="MSA-5"),
    ]
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert [root.id for root in roots] == ["first", "second"]
    assert [child.id for child in roots[0].children] == ["child"]
    assert roots[1].children == []
    assert [a.record_id for a in report.by_kind("AmbiguousParentClaim")] == ["second"]


def test_duplicate_identifier_is_ignored(make_agreement, normalize_all):
    raws = [
        make_agreement("dup", "MSA-1", title="Original"),
        make_agreement("dup", "MSA-2", title="Copy"),
    ]
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert [root.title for root in roots] == ["Original"]
    assert [a.kind for a in report.anomalies] == ["DuplicateIdentifier"]


def test_records_without_contract_number_stay_single(make_agreement, normalize_all):
    raws = [make_agreement("rec-a"), make_agreement("rec-b", agreement_type="Nda")]
    roots = build_hierarchy(normalize_all(raws))

    assert [root.id for root in roots] == ["rec-a", "rec-b"]
    assert all(root.children == [] for root in roots)
    assert roots[0].family_key == "rec-a"


def test_empty_input():
    assert build_hierarchy([]) == []


def test_arena_rejects_second_parent(normalize_all, scenario_agreements):
    records = normalize_all(scenario_agreements)
    arena = ContractArena()
    for record in records:
        assert arena.add(record)
    assert not arena.add(records[0])

    arena.link("rec-msa", "rec-sow")
    with pytest.raises(HierarchyBuildError):
        arena.link("rec-co", "rec-sow")

    exported = arena.export("rec-msa")
    assert [child.id for child in exported.children] == ["rec-sow"]
    assert "rec-co" in arena
    assert len(arena) == 3


def test_sort_key_puts_unknown_types_last(make_agreement, normalize_all):
    known, unknown = normalize_all(
        [make_agreement("k", agreement_type="Other"), make_agreement("u", agreement_type="Mystery")]
    )
    assert sort_key(known) < sort_key(unknown)


def _change_order_chain(make_agreement, length):
    """MSA-100 <- CO-1 <- CO-2 <- ... <- CO-<length>."""
    raws = [make_agreement("chain-root", "MSA-100", title="Chain")]
    parent = "MSA-100"
    for i in range(1, length + 1):
        raws.append(make_agreement(f"co-{i}", f"CO-{i}", agreement_type="ChangeOrder", parent=parent))
        parent = f"CO-{i}"
    return raws


def test_deep_chain_is_linked_without_recursion_limit(make_agreement, normalize_all):
    raws = [make_agreement("healthy", "MSA-1", title="Alpha")] + _change_order_chain(make_agreement, 2_500)
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert [root.id for root in roots] == ["healthy", "chain-root"]
    chain = collect_family(roots[1])
    assert len(chain) == 2_501
    assert [node.id for node in chain[-2:]] == ["co-2499", "co-2500"]

    node, depth = roots[1], 0
    while node.children:
        assert len(node.children) == 1
        node, depth = node.children[0], depth + 1
    assert depth == 2_500
    assert len(report) == 0


def test_deep_chain_cycle_is_still_detected(make_agreement, normalize_all):
    raws = _change_order_chain(make_agreement, 1_500)
    raws.append(make_agreement("loop", "MSA-100", agreement_type="Amendment", parent="CO-1500"))
    report = AnomalyReport()
    roots = HierarchyBuilder(report).build(normalize_all(raws))

    assert len(collect_family(roots[0])) == 1_501
    assert [a.record_id for a in report.by_kind("CycleDetected")] == ["loop"]
