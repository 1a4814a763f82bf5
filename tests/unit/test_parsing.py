"""Unit tests for inbound message parsing."""

from email.message import EmailMessage

from helpdesk.ingestion.domain import RawMessage, parse_message, html_to_text


def test_parses_sender_subject_and_plain_body(raw_message):
    raw = raw_message("12", "Jane Doe <Jane.Doe@may-baker.com>", "Printer broken", "please help\n")

    message = parse_message(raw)

    assert message.sequence_number == "12"
    assert message.sender == "Jane.Doe@may-baker.com"
    assert message.subject == "Printer broken"
    assert message.body == "please help"


def test_prefers_plain_part_over_html(raw_message):
    raw = raw_message("1", "a@gmail.com", "Hi", "plain text", html="<p>html text</p>")

    assert parse_message(raw).body == "plain text"


def test_falls_back_to_html_when_no_plain_part():
    message = EmailMessage()
    message["From"] = "a@gmail.com"
    message["Subject"] = "Html only"
    message.set_content("<p>Issue is <b>fixed</b></p><p>Thanks &amp; bye</p>", subtype="html")

    parsed = parse_message(RawMessage(sequence_number="3", content=message.as_bytes()))

    assert parsed.body == "Issue is fixed\nThanks & bye"


def test_missing_headers_give_empty_values():
    raw = RawMessage(sequence_number="4", content=b"\r\njust a body\r\n")

    parsed = parse_message(raw)

    assert parsed.sender == ""
    assert parsed.subject == ""
    assert parsed.body == "just a body"


def test_encoded_subject_is_decoded():
    raw = RawMessage(
        sequence_number="5",
        content=(
            b"From: a@gmail.com\r\n"
            b"Subject: =?utf-8?q?Caf=C3=A9_printer?=\r\n"
            b"\r\n"
            b"help\r\n"
        ),
    )

    assert parse_message(raw).subject == "Café printer"


def test_html_to_text_drops_styles():
    assert html_to_text("<style>p {color: red}</style><div>Done</div>") == "Done"


def test_malformed_message_id_does_not_fail_the_message():
    raw = RawMessage(
        sequence_number="6",
        content=(
            b"From: a@gmail.com\r\n"
            b"Subject: Printer broken\r\n"
            b"Message-ID: <<<>\r\n"
            b"\r\n"
            b"please help\r\n"
        ),
    )

    parsed = parse_message(raw)

    assert parsed.sender == "a@gmail.com"
    assert parsed.subject == "Printer broken"
    assert parsed.body == "please help"


def test_unknown_charset_falls_back_to_utf8():
    raw = RawMessage(
        sequence_number="7",
        content=(
            b"From: a@gmail.com\r\n"
            b"Subject: Scanner\r\n"
            b"Content-Type: text/plain; charset=x-nope\r\n"
            b"\r\n"
            b"scanner jammed\r\n"
        ),
    )

    parsed = parse_message(raw)

    assert parsed.sender == "a@gmail.com"
    assert parsed.body == "scanner jammed"
