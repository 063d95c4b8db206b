from datetime import date

import pytest

from family_engine.config import EngineConfig
from family_engine.diagnostics import AnomalyReport
from tools.hierarchy_builder import build_hierarchy
from tools.metrics_aggregator import (
    MetricsAggregator,
    aggregate_metrics,
    classify_family_risk,
    collect_compliance_flags,
    collect_family,
    has_government_contract,
    parse_date,
)


def _single_root(records):
    roots = build_hierarchy(records)
    assert len(roots) == 1
    return roots[0]


def test_scenario_metrics(normalize_all, scenario_agreements):
    metrics = aggregate_metrics(_single_root(normalize_all(scenario_agreements)))

    assert metrics.total_contracts == 3
    assert metrics.total_family_value == 160_000
    assert metrics.active_sow_count == 1
    assert metrics.total_change_orders == 1
    assert metrics.avg_risk_level == "Low"


def test_total_value_is_sum_over_all_nodes(make_agreement, normalize_all):
    raws = [make_agreement("root", "MSA-1", value=1_000)]
    for i in range(1, 4):
        raws.append(make_agreement(f"sow-{i}", f"SOW-{i}", agreement_type="Sow", parent="MSA-1", value=i * 100))
        raws.append(
            make_agreement(f"co-{i}", f"CO-{i}", agreement_type="ChangeOrder", parent=f"SOW-{i}", value=i * 10)
        )
    raws.append(make_agreement("unpriced", "CO-99", agreement_type="ChangeOrder", parent="SOW-1"))
    root = _single_root(normalize_all(raws))

    metrics = aggregate_metrics(root)
    nodes = collect_family(root)

    assert metrics.total_contracts == len(nodes) == 8
    assert metrics.total_family_value == sum(node.total_value or 0 for node in nodes) == 1_660
    assert metrics.total_change_orders == 4
    assert metrics.active_sow_count == 3


def test_active_sow_count_ignores_inactive_and_counts_legacy_tag(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1"),
        make_agreement("s1", "SOW-1", agreement_type="Sow", parent="MSA-1"),
        make_agreement("s2", "SOW-2", agreement_type="SOW", parent="MSA-1"),
        make_agreement("s3", "SOW-3", agreement_type="Sow", parent="MSA-1", status="DRAFT"),
        make_agreement("s4", "SOW-4", agreement_type="Sow", parent="MSA-1", status="Expired"),
    ]
    metrics = aggregate_metrics(_single_root(normalize_all(raws)))
    assert metrics.active_sow_count == 2


def test_collect_family_is_preorder(normalize_all, scenario_agreements):
    root = _single_root(normalize_all(scenario_agreements))
    assert [node.id for node in collect_family(root)] == ["rec-msa", "rec-sow", "rec-co"]


def test_family_span(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1", effective="2022-03-01", expiration="2025-02-01"),
        make_agreement("sow", "SOW-1", agreement_type="Sow", parent="MSA-1",
                       effective="2021-12-15", expiration="2026-06-30"),
        make_agreement("co", "CO-1", agreement_type="ChangeOrder", parent="SOW-1",
                       effective="March 5, 2023"),
    ]
    metrics = aggregate_metrics(_single_root(normalize_all(raws)))

    assert metrics.family_span.start == "2021-12-15"
    assert metrics.family_span.end == "2026-06-30"


def test_family_span_without_expiration_has_no_end(normalize_all, scenario_agreements):
    metrics = aggregate_metrics(_single_root(normalize_all(scenario_agreements)))
    assert metrics.family_span.start == "2024-01-01"
    assert metrics.family_span.end is None


def test_unparseable_dates_are_excluded_and_reported(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1", effective="not yet signed", expiration="someday"),
        make_agreement("sow", "SOW-1", agreement_type="Sow", parent="MSA-1", effective="2023-02-01"),
    ]
    report = AnomalyReport()
    metrics = MetricsAggregator(report=report).aggregate(_single_root(normalize_all(raws)))

    assert metrics.family_span.start == "2023-02-01"
    assert metrics.family_span.end is None
    unparseable = report.by_kind("UnparseableDate")
    assert len(unparseable) == 2
    assert {a.record_id for a in unparseable} == {"root"}


def test_defaulted_effective_date_is_not_reported(normalize_all):
    report = AnomalyReport()
    root = _single_root(normalize_all([{"id": "bare"}]))
    metrics = MetricsAggregator(report=report).aggregate(root)

    assert metrics.family_span.start is None
    assert len(report) == 0


@pytest.mark.parametrize(
    "total, government, flags, expected",
    [
        (2_000_000, False, 1, "High"),
        (2_000_001, True, 1, "Critical"),
        (1_999_999, False, 0, "Medium"),
        (500_001, False, 0, "Medium"),
        (500_000, False, 0, "Low"),
        (0, False, 0, "Low"),
        (10, False, 2, "Low"),
        (10, False, 3, "Critical"),
        (10, True, 0, "Critical"),
    ],
)
def test_classify_family_risk(total, government, flags, expected, config):
    assert classify_family_risk(total, government, flags, config) == expected


def test_risk_thresholds_follow_config():
    config = EngineConfig(high_risk_threshold=1_000, medium_risk_threshold=100)
    assert classify_family_risk(1_000, False, 0, config) == "High"
    assert classify_family_risk(101, False, 0, config) == "Medium"


def test_family_at_high_threshold_is_high(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1", value=1_500_000, compliance=["SOX"]),
        make_agreement("sow", "SOW-1", agreement_type="Sow", parent="MSA-1", value=500_000),
    ]
    metrics = aggregate_metrics(_single_root(normalize_all(raws)))
    assert metrics.total_family_value == 2_000_000
    assert metrics.avg_risk_level == "High"


def test_government_child_makes_family_critical(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1", value=10),
        make_agreement("sow", "SOW-1", agreement_type="Sow", parent="MSA-1", government=True),
    ]
    metrics = aggregate_metrics(_single_root(normalize_all(raws)))
    assert metrics.avg_risk_level == "Critical"


def test_government_marker_in_compliance_makes_family_critical(make_agreement, normalize_all):
    raws = [make_agreement("root", "MSA-1", compliance=["State government procurement rules"])]
    metrics = aggregate_metrics(_single_root(normalize_all(raws)))
    assert metrics.avg_risk_level == "Critical"


def test_compliance_flags_are_deduplicated(make_agreement, normalize_all):
    raws = [
        make_agreement("root", "MSA-1", compliance=["SOX", "GDPR"]),
        make_agreement("sow", "SOW-1", agreement_type="Sow", parent="MSA-1", compliance=["GDPR", "HIPAA"]),
    ]
    root = _single_root(normalize_all(raws))
    assert collect_compliance_flags(collect_family(root)) == ["SOX", "GDPR", "HIPAA"]
    assert aggregate_metrics(root).avg_risk_level == "Critical"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-01-31", date(2024, 1, 31)),
        ("2024-01-31T10:00:00Z", date(2024, 1, 31)),
        ("01/31/2024", date(2024, 1, 31)),
        ("January 31, 2024", date(2024, 1, 31)),
        ("Jan 31, 2024", date(2024, 1, 31)),
        ("31 January 2024", date(2024, 1, 31)),
        ("2024-02-30", None),
        ("not yet signed", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_date(value, expected):
    assert parse_date(value) == expected


def test_government_markers_match_regardless_of_case(make_agreement, normalize_all):
    config = EngineConfig(government_markers=("Federal Acquisition",))
    raws = [make_agreement("root", "MSA-1", compliance=["FEDERAL ACQUISITION Regulation"])]
    root = _single_root(normalize_all(raws))

    assert has_government_contract(collect_family(root), config) is True
    assert MetricsAggregator(config).aggregate(root).avg_risk_level == "Critical"
