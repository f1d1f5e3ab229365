from custody.core.config import settings
from custody.services.receipt_service import (
    DELIVERY_PREFIX,
    PAYMENT_PREFIX,
    format_document_number,
    issue_document_number,
)


def test_prefixes_count_independently(db_session):
    assert issue_document_number(db_session, DELIVERY_PREFIX) == "T-0000001"
    assert issue_document_number(db_session, DELIVERY_PREFIX) == "T-0000002"
    assert issue_document_number(db_session, PAYMENT_PREFIX) == "P-0000001"
    db_session.commit()

    assert issue_document_number(db_session, DELIVERY_PREFIX) == "T-0000003"


def test_counter_rolls_back_with_its_transaction(db_session):
    issue_document_number(db_session, DELIVERY_PREFIX)
    db_session.commit()

    issue_document_number(db_session, DELIVERY_PREFIX)
    db_session.rollback()

    assert issue_document_number(db_session, DELIVERY_PREFIX) == "T-0000002"


def test_document_number_width_follows_settings(monkeypatch):
    monkeypatch.setattr(settings, "receipt_number_width", 4)
    assert format_document_number("T", 12) == "T-0012"
