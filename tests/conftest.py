from pathlib import Path

import pytest

from family_engine.config import EngineConfig
from tools.record_normalizer import RecordNormalizer


SAMPLE_DATA = Path(__file__).resolve().parent.parent / "sample_data" / "agreements.json"


def _agreement(
    record_id,
    number=None,
    *,
    agreement_type="Msa",
    title=None,
    parent=None,
    value=None,
    status="COMPLETE",
    governing_law="New York",
    jurisdiction="New York County",
    payment="THIRTY_DAYS",
    effective="2024-01-01",
    expiration=None,
    government=False,
    compliance=None,
    industry=None,
    parties=("Contoso Ltd.", "Northwind Consulting LLC"),
):
    """Raw agreement record shaped like the contract repository export."""
    provisions = {
        "effective_date": effective,
        "governing_law": governing_law,
        "payment_terms_due_date": payment,
    }
    if jurisdiction:
        provisions["jurisdiction"] = jurisdiction
    if value is not None:
        provisions["total_agreement_value"] = value
    if expiration:
        provisions["renewal_notice_date"] = expiration

    custom = {}
    if parent:
        custom["c_ParentContractNumber"] = parent
    if government:
        custom["c_GovernmentContract"] = "True"

    raw = {
        "id": record_id,
        "title": title or f"{agreement_type} {record_id}",
        "file_name": f"{number} signed.pdf" if number else f"{record_id}.pdf",
        "type": agreement_type,
        "category": "BusinessServices",
        "status": status,
        "parties": [
            {"id": f"p{i}", "name_in_agreement": name}
            for i, name in enumerate(parties, start=1)
        ],
        "provisions": provisions,
        "custom_provisions": custom,
    }
    if compliance is not None:
        raw["compliance_requirements"] = list(compliance)
    if industry:
        raw["industry"] = industry
    return raw


@pytest.fixture
def make_agreement():
    return _agreement


@pytest.fixture
def config():
    return EngineConfig()


@pytest.fixture
def normalize_all(config):
    normalizer = RecordNormalizer(config)

    def _normalize(raws):
        return [normalizer.normalize(raw) for raw in raws]

    return _normalize


@pytest.fixture
def scenario_agreements():
    """MSA-1 <- SOW-1 <- CO-1."""
    return [
        _agreement("rec-msa", "MSA-1", value=100_000),
        _agreement("rec-sow", "SOW-1", agreement_type="Sow", parent="MSA-1", value=50_000),
        _agreement("rec-co", "CO-1", agreement_type="ChangeOrder", parent="SOW-1", value=10_000),
    ]


@pytest.fixture
def sample_data_path():
    return SAMPLE_DATA
