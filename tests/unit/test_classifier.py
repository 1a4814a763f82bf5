"""Unit tests for MessageClassifier and IngestionRules."""

import pytest

from helpdesk.ingestion.domain import (
    DispositionKind,
    IgnoreReason,
    IngestionRules,
    MessageClassifier,
)
from helpdesk.tickets.domain import NotificationTemplateBuilder, Ticket
from tests.fakes import MARKER


@pytest.fixture
def classifier(rules):
    return MessageClassifier(rules)


class TestIgnore:
    def test_unknown_domain_is_ignored(self, classifier):
        disposition = classifier.classify("notify@system.example", "Printer broken", "please help")

        assert disposition.kind == DispositionKind.IGNORE
        assert disposition.reason == IgnoreReason.DOMAIN_NOT_ALLOWED

    def test_empty_sender_is_ignored(self, classifier):
        disposition = classifier.classify("", "Printer broken", "please help")

        assert disposition.is_ignore
        assert disposition.reason == IgnoreReason.EMPTY_SENDER

    def test_excluded_sender_is_ignored_case_insensitively(self, classifier):
        disposition = classifier.classify("Hello@Notify.Railway.App", "Deploy finished", "done")

        assert disposition.is_ignore
        assert disposition.reason == IgnoreReason.EXCLUDED_SENDER

    def test_subdomain_of_allowed_domain_is_not_allowed(self, classifier):
        disposition = classifier.classify("a@mail.gmail.com", "Printer broken", "please help")

        assert disposition.is_ignore

    def test_unparsed_display_name_is_not_allowed(self, classifier):
        disposition = classifier.classify("unterminated <a@gmail.com", "Printer broken", "please help")

        assert disposition.reason == IgnoreReason.DOMAIN_NOT_ALLOWED

    def test_resolution_from_unknown_domain_is_ignored(self, classifier):
        subject = f"Re: {MARKER} (ID: 42): Printer broken"

        disposition = classifier.classify("x@example.org", subject, "fixed, thanks")

        assert disposition.is_ignore
        assert disposition.ticket_id is None


class TestResolutionNotice:
    def test_reply_with_keyword_resolves_ticket(self, classifier):
        subject = f"Re: {MARKER} (ID: 42): Printer broken"

        disposition = classifier.classify("it.admin@may-baker.com", subject, "fixed, thanks")

        assert disposition.kind == DispositionKind.RESOLUTION_NOTICE
        assert disposition.ticket_id == 42

    @pytest.mark.parametrize("subject", [
        "RE: new helpdesk request assigned (ID: 7): Printer broken",
        "Fwd: Re: New Helpdesk Request Assigned (ID:7): Printer broken",
        "Re:New Helpdesk Request Assigned (ID: 7): x",
    ])
    def test_subject_match_is_case_insensitive_and_unanchored(self, classifier, subject):
        disposition = classifier.classify("a@gmail.com", subject, "All DONE here")

        assert disposition.kind == DispositionKind.RESOLUTION_NOTICE
        assert disposition.ticket_id == 7

    def test_reply_without_keyword_is_new_ticket(self, classifier):
        subject = f"Re: {MARKER} (ID: 42): Printer broken"

        disposition = classifier.classify("a@gmail.com", subject, "still broken, please check")

        assert disposition.kind == DispositionKind.NEW_TICKET

    def test_keyword_without_reply_subject_is_new_ticket(self, classifier):
        disposition = classifier.classify("a@gmail.com", "Printer broken", "I think it is done for")

        assert disposition.kind == DispositionKind.NEW_TICKET

    def test_assignment_subject_round_trips_through_classifier(self, classifier):
        from datetime import date, time

        ticket = Ticket(
            id=314, issue="VPN down", status="open",
            date_reported=date(2024, 5, 1), time_reported=time(9, 30),
        )
        subject = "Re: " + NotificationTemplateBuilder(MARKER).assignment_subject(ticket)

        assert classifier.reply_ticket_id(subject) == 314


class TestNewTicket:
    def test_plain_message_from_allowed_domain(self, classifier):
        disposition = classifier.classify("a@gmail.com", "Printer broken", "please help")

        assert disposition.kind == DispositionKind.NEW_TICKET
        assert disposition.ticket_id is None


class TestRules:
    def test_normalizes_domains_keywords_and_senders(self):
        rules = IngestionRules(
            allowed_domains=["@Gmail.com ", "gmail.com", "May-Baker.com"],
            resolution_keywords=["Fixed", " fixed", ""],
            excluded_senders=[" Bot@Example.com"],
        )

        assert rules.allowed_domains == ["gmail.com", "may-baker.com"]
        assert rules.resolution_keywords == ["fixed"]
        assert rules.excluded_senders == ["bot@example.com"]

    def test_custom_marker_is_used_for_matching(self):
        rules = IngestionRules(
            allowed_domains=["corp.test"],
            resolution_keywords=["closed"],
            assignment_subject_marker="Ticket [assigned]",
        )
        classifier = MessageClassifier(rules)

        disposition = classifier.classify(
            "ops@corp.test", "Re: Ticket [assigned] (ID: 5): Disk", "closed it"
        )

        assert disposition.ticket_id == 5

    def test_empty_marker_is_rejected(self):
        with pytest.raises(ValueError):
            IngestionRules(assignment_subject_marker="")
