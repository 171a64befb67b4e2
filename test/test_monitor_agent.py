from datetime import timedelta

import pytest

from agents.monitor_agent import PurchaseReviewAgent, review_message
from conftest import NOW, USER
from core.actions import PurchaseReview
from utils.config import ReviewSettings

TODAY = NOW.date()


def add_expense(store, amount, category="Lazer", days_back=1):
    return store.add_transaction(USER, amount, "expense", category, TODAY - timedelta(days=days_back))


def test_new_expense_is_left_out_of_its_own_baseline(store):
    add_expense(store, 100)
    new = add_expense(store, 200, days_back=0)
    review = PurchaseReviewAgent(store).review(USER, "Lazer", 200, new.id, NOW)
    # mean of the other rows is 100, not 150
    assert review.suggested_savings == pytest.approx(20.0)


def test_identical_amount_recorded_twice_keeps_the_older_row(store):
    add_expense(store, 100)
    add_expense(store, 300, days_back=0)
    new = add_expense(store, 300, days_back=0)
    review = PurchaseReviewAgent(store).review(USER, "Lazer", 300, new.id, NOW)
    # baseline is (100 + 300) / 2 = 200; 300 > 260
    assert review.suggested_savings == pytest.approx(20.0)


def test_no_other_rows_means_no_review(store):
    new = add_expense(store, 9000, days_back=0)
    assert PurchaseReviewAgent(store).review(USER, "Lazer", 9000, new.id, NOW) is None


def test_ignore_tip_snoozes_for_seven_days(store):
    agent = PurchaseReviewAgent(store)
    tip = agent.ignore_tip(USER, "Lazer", NOW)
    assert tip.ignored_until == NOW + timedelta(days=7)
    assert tip.is_active(NOW + timedelta(days=6))
    assert not tip.is_active(NOW + timedelta(days=8))

    add_expense(store, 100)
    new = add_expense(store, 1000, days_back=0)
    assert agent.review(USER, "Lazer", 1000, new.id, NOW + timedelta(days=6)) is None
    assert agent.review(USER, "Lazer", 1000, new.id, NOW + timedelta(days=8)) is not None


def test_ignored_tip_is_per_category(store):
    agent = PurchaseReviewAgent(store)
    agent.ignore_tip(USER, "Transporte", NOW)
    add_expense(store, 100)
    new = add_expense(store, 1000, days_back=0)
    assert agent.review(USER, "Lazer", 1000, new.id, NOW) is not None


def test_settings_drive_threshold_and_share(store):
    agent = PurchaseReviewAgent(store, ReviewSettings(threshold_multiplier=1.1, savings_share=0.5))
    add_expense(store, 100)
    new = add_expense(store, 120, days_back=0)
    review = agent.review(USER, "Lazer", 120, new.id, NOW)
    assert review.suggested_savings == pytest.approx(10.0)


def test_review_message_mentions_goal_and_amount():
    text = review_message(PurchaseReview("Lazer", 12.5, "Viagem"))
    assert text.startswith("💡")
    assert "20%" in text
    assert "R$ 12.50" in text
    assert "sua meta 'Viagem'" in text


def test_review_message_without_goal():
    text = review_message(PurchaseReview("Lazer", 3.0))
    assert "suas metas" in text
