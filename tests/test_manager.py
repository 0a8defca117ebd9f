from datetime import date
from decimal import Decimal

import pytest

from budget_categorizer.classifiers.rules import RULES, Rule, RuleClassifier
from budget_categorizer.domain.fingerprint import fingerprint
from budget_categorizer.manager import CategorizerService
from budget_categorizer.models import CategorySource, Transaction


@pytest.fixture
def service(tmp_path):
    return CategorizerService(data_dir=str(tmp_path), fallback_confidence=0.2)


def make_tx(merchant, amount="-10.00", **kwargs):
    return Transaction(merchant=merchant, amount=Decimal(amount), date=date(2024, 1, 15), **kwargs)


def test_rule_classification(service):
    result = service.classify(make_tx("NETFLIX"))
    assert result.category == "SUBSCRIPTIONS"
    assert result.source == CategorySource.RULE
    assert result.matched_rule_id == "subscriptions_streaming"
    assert result.confidence < 1.0


def test_override_outranks_rule(service):
    tx = make_tx("NETFLIX")
    service.record_user_category(tx, "ENTERTAINMENT")

    result = service.classify(make_tx("NETFLIX", amount="-15.99"))
    assert result.category == "ENTERTAINMENT"
    assert result.source == CategorySource.OVERRIDE
    assert result.confidence == 1.0
    assert result.matched_rule_id is None
    assert result.matched_signals == ["override_fingerprint"]


def test_stem_generalization(service):
    service.record_user_category(make_tx("ESSELUNGA 00412"), "DINING")

    other = make_tx("ESSELUNGA 00877")
    assert service.overrides.get_by_fingerprint(fingerprint(other)) is None

    result = service.classify(other)
    assert result.category == "DINING"
    assert result.source == CategorySource.OVERRIDE
    assert result.matched_signals == ["override_stem"]


def test_fingerprint_override_beats_stem_override(service):
    service.record_user_category(make_tx("ESSELUNGA 00412"), "DINING")
    service.record_user_category(make_tx("ESSELUNGA 00877"), "GROCERIES")

    # The second correction moved the shared stem; the first fingerprint still wins.
    assert service.classify(make_tx("ESSELUNGA 00412")).category == "DINING"
    assert service.classify(make_tx("ESSELUNGA 00999")).category == "GROCERIES"


def test_salary_before_generic_income(service):
    salary = service.classify(make_tx("ACME SALARY JAN", amount="2500"))
    refund = service.classify(make_tx("Refund from shop", amount="20"))
    assert salary.category == "INCOME_SALARY"
    assert refund.category == "INCOME_OTHER"


def test_fallback(service):
    tx = make_tx("ZXQ Vendor 77")
    result = service.classify(tx)
    assert result.category == "UNCATEGORIZED"
    assert result.source == CategorySource.FALLBACK
    assert result.confidence == pytest.approx(0.2)
    assert result.fingerprint == fingerprint(tx)


def test_classify_does_not_short_circuit_on_existing_category(service):
    tx = make_tx("NETFLIX", category="OTHER")
    assert service.classify(tx).category == "SUBSCRIPTIONS"


def test_apply_classification_keeps_explicit_category(service):
    tx = make_tx("NETFLIX", category="ENTERTAINMENT", category_confidence=0.6)
    service.apply_classification(tx)
    assert tx.category == "ENTERTAINMENT"
    assert tx.category_source == CategorySource.IMPORT
    assert tx.category_confidence is None
    assert tx.category_fingerprint == fingerprint(tx)


def test_apply_classification_runs_classifier_for_fallback(service):
    tx = make_tx("EASY PARK", category="UNCATEGORIZED")
    service.apply_classification(tx)
    assert tx.category == "PARKING"
    assert tx.category_source == CategorySource.RULE
    assert tx.matched_rule_id == "easypark_parking"


def test_record_user_category_coerces_invalid(service):
    tx = make_tx("Some Shop")
    service.record_user_category(tx, "NotARealCategory")
    assert tx.category == "UNCATEGORIZED"
    assert tx.category_source == CategorySource.OVERRIDE
    assert tx.category_confidence == 1.0


def test_record_user_category_writes_both_keys(service):
    tx = make_tx("EASY PARK")
    service.record_user_category(tx, "TRANSPORT_PUBLIC")
    assert service.overrides.get_by_fingerprint(tx.category_fingerprint) == "TRANSPORT_PUBLIC"
    assert service.overrides.get_by_stem("EASYPARK") == "TRANSPORT_PUBLIC"


def test_custom_category_override(service):
    service.custom_categories.add("Pets")
    tx = make_tx("Zooplus")
    service.record_user_category(tx, "Pets")
    assert service.classify(make_tx("Zooplus")).category == "Pets"

    # Removing the custom category coerces stale overrides.
    service.custom_categories.remove("Pets")
    assert service.classify(make_tx("Zooplus")).category == "UNCATEGORIZED"


def test_raising_rule_does_not_break_classification(tmp_path):
    def explode(tx, tokens, norm):
        raise ValueError("boom")

    rules = RuleClassifier([Rule("broken", 0.99, explode, "OTHER"), *RULES])
    service = CategorizerService(data_dir=str(tmp_path), rules=rules)
    assert service.classify(make_tx("NETFLIX")).category == "SUBSCRIPTIONS"


def test_backfill_stems(service):
    service.overrides.upsert_fingerprint("fp1", "GROCERIES", "ESSELUNGA 00412")
    assert service.backfill_stems() == 1
    assert service.backfill_stems() == 0
