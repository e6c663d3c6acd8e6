import pytest

from prospect.contexts.extraction.predicates import ValidityPredicate
from prospect.contexts.extraction.verdicts import ACCEPTED, REJECTED, TRANSIENT, ValidityVerdict
from prospect.utils.text_processing import looks_like_email, looks_like_person_name, normalize_website


@pytest.fixture
def email_predicate():
    return ValidityPredicate(looks_like_email)


@pytest.mark.parametrize(
    "reading",
    [
        ("jane@example.com", False, None),
        ("loading...", True, None),
        (None, False, "not found"),
        (None, True, None),
        ("", False, ""),
    ],
)
def test_evaluate_is_repeatable(email_predicate, reading):
    verdicts = {email_predicate.evaluate(*reading) for _ in range(5)}
    assert len(verdicts) == 1


def test_well_formed_value_wins_over_busy_flag(email_predicate):
    verdict = email_predicate.evaluate("jane@example.com", True, None)
    assert verdict == ValidityVerdict.accepted("jane@example.com")


def test_well_formed_value_wins_over_terminal_error(email_predicate):
    verdict = email_predicate.evaluate("jane@example.com", False, "not found")
    assert verdict.kind == ACCEPTED


@pytest.mark.parametrize("text", ["loading...", "Loading", "SEARCHING for email", "Processing request"])
def test_transient_words_are_never_accepted(text):
    # Accept anything non-empty, so only the marker check can refuse it
    predicate = ValidityPredicate(lambda value: True)
    assert predicate.evaluate(text, False, None).kind != ACCEPTED


def test_well_formed_value_with_marker_word_is_transient():
    predicate = ValidityPredicate(lambda value: "@" in value)
    assert predicate.evaluate("loading@wait.com", False, None).kind == TRANSIENT


def test_terminal_error_is_rejected_with_reason(email_predicate):
    verdict = email_predicate.evaluate(None, False, "cannot find")
    assert verdict.kind == REJECTED
    assert verdict.reason == "cannot find"


def test_terminal_error_with_marker_word_is_transient(email_predicate):
    assert email_predicate.evaluate(None, False, "error while loading").kind == TRANSIENT


def test_busy_page_is_transient(email_predicate):
    assert email_predicate.evaluate(None, True, None).kind == TRANSIENT


def test_inconclusive_idle_page_is_transient(email_predicate):
    assert email_predicate.evaluate("not an email", False, None).kind == TRANSIENT


def test_custom_markers_replace_defaults():
    predicate = ValidityPredicate(looks_like_email, transient_markers=["waiting"])
    assert predicate.evaluate("waiting@acme.com", False, None).kind == TRANSIENT
    assert predicate.evaluate("processing@acme.com", False, None).kind == ACCEPTED


def test_person_name_predicate_applies_blocklist():
    predicate = ValidityPredicate(lambda name: looks_like_person_name(name, ["analytics"]))
    assert predicate("Ada Lovelace", False, None).kind == ACCEPTED
    assert predicate("People Analytics", False, None).kind == TRANSIENT


def test_accepted_values_are_normalized():
    predicate = ValidityPredicate(lambda url: url.startswith("http"), normalize=normalize_website)
    assert predicate.evaluate("https://acme.com/", False, None) == ValidityVerdict.accepted("https://acme.com")
    # Normalization never turns a reading into an answer
    assert predicate.evaluate("acme.com", False, None).kind == TRANSIENT
