import base64
from unittest.mock import Mock, patch

import pytest
from rich.console import Console

from inboxparse.errors import ConfigError, MissingPayloadError, RemoteError
from inboxparse.main import html_to_text, main, render_message, run
from inboxparse.models import Message, MessageEnvelope


def b64url(b: bytes) -> str:
    return base64.urlsafe_b64encode(b).decode()


def envelope(message_id: str, subject: str) -> MessageEnvelope:
    return MessageEnvelope.from_api(
        {
            "id": message_id,
            "payload": {
                "mimeType": "multipart/alternative",
                "headers": [
                    {"name": "From", "value": "a@x.com"},
                    {"name": "To", "value": "b@y.com"},
                    {"name": "Subject", "value": subject},
                ],
                "parts": [
                    {"mimeType": "text/plain", "body": {"data": b64url(b"hi")}},
                    {"mimeType": "text/html", "body": {"data": b64url(b"<p>hi</p>")}},
                ],
            },
        }
    )


@pytest.fixture
def out():
    return Console(record=True, width=120)


def test_run_with_no_matches_fetches_nothing(out):
    client = Mock()
    client.list_messages.return_value = []

    assert run(client, "from:nobody", out=out) == 0
    client.get_message.assert_not_called()
    assert "No messages matched" in out.export_text()


def test_run_prints_messages_in_list_order(out):
    client = Mock()
    client.list_messages.return_value = ["m2", "m1"]
    client.get_message.side_effect = lambda mid, **kw: envelope(mid, f"Subject {mid}")

    assert run(client, "label:newsletter", out=out) == 2

    assert [c.args[0] for c in client.get_message.call_args_list] == ["m2", "m1"]
    client.get_message.assert_called_with("m1", format="full", user_id="me")
    text = out.export_text()
    assert text.index("Subject m2") < text.index("Subject m1")
    assert "<p>hi</p>" in text
    assert "a@x.com" in text


def test_run_stops_at_first_failure(out):
    client = Mock()
    client.list_messages.return_value = ["m1", "m2", "m3"]
    client.get_message.side_effect = [
        envelope("m1", "one"),
        RemoteError("Unable to retrieve message m2"),
        envelope("m3", "three"),
    ]

    with pytest.raises(RemoteError):
        run(client, "q", out=out)
    assert client.get_message.call_count == 2


def test_run_keep_going_skips_failed_messages(out):
    client = Mock()
    client.list_messages.return_value = ["m1", "m2", "m3"]
    client.get_message.side_effect = [
        RemoteError("Unable to retrieve message m1"),
        MessageEnvelope(id="m2"),
        envelope("m3", "three"),
    ]

    assert run(client, "q", out=out, keep_going=True) == 1
    text = out.export_text()
    assert "Skipping message m1" in text
    assert "Skipping message m2" in text
    assert "three" in text


def test_run_missing_payload_is_fatal_by_default(out):
    client = Mock()
    client.list_messages.return_value = ["m1"]
    client.get_message.return_value = MessageEnvelope(id="m1")

    with pytest.raises(MissingPayloadError):
        run(client, "q", out=out)


def test_render_message_as_text(out):
    message = Message(
        id="m1",
        From="a@x.com",
        To="b@y.com",
        Subject="[News] Hi",
        BodyHtml="<style>p {}</style><p>Hello <b>there</b></p><script>x()</script>",
    )
    out.print(render_message(message, as_text=True))
    text = out.export_text()

    assert "[News] Hi" in text
    assert "Hello" in text
    assert "x()" not in text
    assert "<p>" not in text


def test_html_to_text_strips_tags():
    assert html_to_text("<div><p>one</p><p>two</p></div>") == "one\ntwo"


def test_main_runs_query():
    with patch("inboxparse.main.config.load_env"), patch(
        "inboxparse.main.get_credentials"
    ) as mock_creds, patch("inboxparse.main.GmailClient") as MockClient, patch(
        "sys.argv",
        ["inboxparse", "--query", "from:hi@vimtricks.com", "--token", "token.json"],
    ):
        MockClient.return_value.list_messages.return_value = []
        assert main() == 0

    mock_creds.assert_called_once()
    assert mock_creds.call_args[0][0] == "token.json"
    MockClient.assert_called_once_with(mock_creds.return_value, user_id="me")
    MockClient.return_value.list_messages.assert_called_once_with(
        "from:hi@vimtricks.com", max_results=None
    )


def test_main_reports_fatal_errors(tmp_path):
    with patch("inboxparse.main.config.load_env"), patch(
        "inboxparse.main.get_credentials",
        side_effect=ConfigError("Credentials file not found at credentials.json"),
    ), patch("inboxparse.main.GmailClient") as MockClient:
        status = main(["--query", "q", "--token", str(tmp_path / "token.json")])

    assert status == 1
    MockClient.assert_not_called()


@pytest.mark.parametrize("value", ["0", "-3", "ten"])
def test_max_results_must_be_positive(value):
    with patch("inboxparse.main.config.load_env"), patch(
        "inboxparse.main.get_credentials"
    ) as mock_creds:
        with pytest.raises(SystemExit) as excinfo:
            main(["--max-results", value])

    assert excinfo.value.code == 2
    mock_creds.assert_not_called()


def test_max_results_is_passed_to_list_call():
    with patch("inboxparse.main.config.load_env"), patch(
        "inboxparse.main.get_credentials"
    ), patch("inboxparse.main.GmailClient") as MockClient:
        MockClient.return_value.list_messages.return_value = []
        assert main(["--query", "q", "--token", "token.json", "--max-results", "7"]) == 0

    MockClient.return_value.list_messages.assert_called_once_with("q", max_results=7)
