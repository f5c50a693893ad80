import httplib2
import pytest

from application_sync.email_client import GmailClient, email_content, extract_text
from application_sync.errors import ProviderApiError
from application_sync.models import BodyPart, RawMessage

from conftest import FakeGmailService, b64, gmail_message, http_error


def test_extract_plain_leaf():
    assert extract_text(BodyPart("text/plain", b64("Hello  there\n"))) == "Hello  there\n"


def test_extract_html_is_stripped_and_collapsed():
    html = "<html><body><p>Thanks for\n\n applying</p><br/>Acme</body></html>"
    assert extract_text(BodyPart("text/html", b64(html))) == "Thanks for applying Acme"


def test_extract_prefers_first_non_empty_child():
    tree = BodyPart("multipart/mixed", parts=[
        BodyPart("multipart/alternative", parts=[
            BodyPart("text/plain", b64("")),
            BodyPart("text/html", b64("<p>   </p>")),
        ]),
        BodyPart("text/plain", b64("second")),
        BodyPart("text/plain", b64("third")),
    ])
    assert extract_text(tree) == "second"


def test_extract_depth_first_order():
    tree = BodyPart("multipart/mixed", parts=[
        BodyPart("multipart/alternative", parts=[BodyPart("text/plain", b64("nested first"))]),
        BodyPart("text/plain", b64("sibling")),
    ])
    assert extract_text(tree) == "nested first"


def test_extract_empty_tree():
    assert extract_text(BodyPart("multipart/mixed")) == ""
    assert extract_text(BodyPart()) == ""


def test_extract_bad_base64_never_raises():
    assert extract_text(BodyPart("text/plain", "a")) == ""


def test_message_from_gmail_headers_are_case_insensitive():
    msg = RawMessage.from_gmail(gmail_message("m1", subject="Hi", sender="a@b.com", body="body text"))
    assert msg.header("subject") == "Hi"
    assert msg.header("FROM") == "a@b.com"
    assert msg.header("Date") == ""
    content = email_content(msg)
    assert content.body == "body text"
    assert content.sender == "a@b.com"


def test_list_candidates_single_page():
    msgs = [gmail_message(f"m{i}") for i in range(30)]
    service = FakeGmailService(msgs)
    client = GmailClient(service=service, query="q", max_results=25)
    ids = client.list_candidates()
    assert len(ids) == 25
    assert service.list_calls == [{"userId": "me", "q": "q", "maxResults": 25}]


def test_list_candidates_follows_pages_when_allowed():
    msgs = [gmail_message(f"m{i}") for i in range(5)]
    client = GmailClient(service=FakeGmailService(msgs, page_size=2), max_results=2, max_pages=10)
    assert client.list_candidates() == ["m0", "m1", "m2", "m3", "m4"]


def test_list_candidates_empty_mailbox():
    assert GmailClient(service=FakeGmailService()).list_candidates() == []


def test_list_error_becomes_provider_error():
    client = GmailClient(service=FakeGmailService(list_error=http_error(401, b"invalid credentials")))
    with pytest.raises(ProviderApiError) as exc:
        client.list_candidates()
    assert exc.value.status == 401
    assert "invalid credentials" in exc.value.body


def test_fetch_full_returns_raw_message():
    client = GmailClient(service=FakeGmailService([gmail_message("m1", snippet="snip")]))
    msg = client.fetch_full("m1")
    assert msg.id == "m1"
    assert msg.thread_id == "t-m1"
    assert msg.snippet == "snip"


def test_fetch_error_becomes_provider_error():
    service = FakeGmailService([gmail_message("m1")], get_errors={"m1": http_error(500)})
    with pytest.raises(ProviderApiError) as exc:
        GmailClient(service=service).fetch_full("m1")
    assert exc.value.status == 500


def test_list_transport_failure_becomes_provider_error():
    client = GmailClient(service=FakeGmailService(list_error=ConnectionResetError("connection reset")))
    with pytest.raises(ProviderApiError) as exc:
        client.list_candidates()
    assert exc.value.status == 0
    assert "connection reset" in exc.value.body


def test_fetch_transport_failure_becomes_provider_error():
    service = FakeGmailService([gmail_message("m1")],
                               get_errors={"m1": httplib2.ServerNotFoundError("Unable to find the server")})
    with pytest.raises(ProviderApiError) as exc:
        GmailClient(service=service).fetch_full("m1")
    assert exc.value.status == 0
