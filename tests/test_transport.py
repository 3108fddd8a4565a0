import plistlib

import pytest
import requests

from pytss import transport as transport_module
from pytss.exceptions import TSSProtocolError, TSSTransportError
from pytss.request import TSSRequest
from pytss.transport import TSS_CONTROLLER_URLS, TSS_MAX_RETRIES, TSSTransport, parse_message, parse_status

TICKET = bytes.fromhex('3082') + b'\x5a' * 64


class FakeResponse:
    def __init__(self, content: bytes):
        self.content = content


class FakeSession:
    """
    Replays canned bodies (or raises canned exceptions) for consecutive POSTs.
    """

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls = []
        self.closed = False

    def post(self, url, data=None, headers=None, verify=True, timeout=None):
        self.calls.append({'url': url, 'data': data, 'headers': headers, 'verify': verify, 'timeout': timeout})
        reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]
        if isinstance(reply, Exception):
            raise reply
        return FakeResponse(reply)

    def close(self):
        self.closed = True


def success_body(document: dict) -> bytes:
    return b'STATUS=0&MESSAGE=SUCCESS&REQUEST_STRING=' + plistlib.dumps(document, fmt=plistlib.FMT_XML)


@pytest.fixture(scope='function')
def sleeps(monkeypatch) -> list:
    delays = []
    monkeypatch.setattr(transport_module.time, 'sleep', delays.append)
    return delays


def test_parse_status():
    assert parse_status(b'STATUS=94&MESSAGE=This device isn\'t eligible') == 94
    assert parse_status(b'STATUS=0&MESSAGE=SUCCESS') == 0
    assert parse_status(b'<html>gateway timeout</html>') is None
    assert parse_status(b'') is None


def test_parse_message():
    assert parse_message(b'STATUS=100&MESSAGE=An internal error occurred.&EXTRA=1') == 'An internal error occurred.'
    assert parse_message(b'STATUS=100') is None


def test_submit_success(sleeps):
    session = FakeSession(success_body({'APImg4Ticket': TICKET}))
    request = TSSRequest({'ApECID': 0x1234})

    response = TSSTransport(session=session).submit(request)

    assert response.ap_img4_ticket == TICKET
    assert len(session.calls) == 1
    call = session.calls[0]
    assert call['url'] == TSS_CONTROLLER_URLS[0]
    assert call['verify'] is False
    assert call['headers']['Cache-Control'] == 'no-cache'
    assert call['headers']['Content-type'] == 'text/xml; charset="utf-8"'
    assert call['headers']['Expect'] == ''
    assert call['headers']['User-Agent'] == 'InetURL/1.0'
    assert plistlib.loads(call['data']) == request.as_dict()
    assert sleeps == []


def test_submit_round_trip(build_identity, parameters):
    request = TSSRequest()
    request.add_ap_tags_from_manifest(build_identity)
    request.add_ap_img4_tags(parameters)

    # echo the request back the way the server embeds its plist after the status line
    document = request.as_dict()
    document['APImg4Ticket'] = TICKET
    document['LLB'] = {'Path': 'Firmware/all_flash/LLB.d10.RELEASE.im4p', 'Blob': b'\x99' * 8}
    session = FakeSession(success_body(document))

    response = TSSTransport(session=session).submit(request)
    assert response.get_ticket('APImg4Ticket') == TICKET
    assert response.get_blob_by_entry('LLB') == b'\x99' * 8
    assert response['UniqueBuildID'] == build_identity['UniqueBuildID']
    assert response['ApNonce'] == parameters['ApNonce']


def test_submit_accepts_plain_documents():
    session = FakeSession(success_body({'BBTicket': b'\x01'}))
    response = TSSTransport(session=session).submit({'@BBTicket': True})
    assert response.bb_ticket == b'\x01'
    assert plistlib.loads(session.calls[0]['data']) == {'@BBTicket': True}


def test_submit_fatal_status_stops_immediately(sleeps):
    session = FakeSession(b'STATUS=94&MESSAGE=This device isn\'t eligible for the requested build.')

    with pytest.raises(TSSTransportError) as e:
        TSSTransport(session=session).submit(TSSRequest())

    assert len(session.calls) == 1
    assert e.value.status == 94
    assert e.value.message == 'This device isn\'t eligible for the requested build.'
    assert e.value.attempts == 1
    assert sleeps == []


@pytest.mark.parametrize('status', [8, 49, 94, 100])
def test_submit_fatal_statuses(sleeps, status):
    session = FakeSession(f'STATUS={status}&MESSAGE=rejected'.encode())
    with pytest.raises(TSSTransportError) as e:
        TSSTransport(session=session).submit(TSSRequest())
    assert e.value.status == status
    assert len(session.calls) == 1


def test_submit_without_status_retries_every_endpoint(sleeps):
    session = FakeSession(b'<html>Service Unavailable</html>')

    with pytest.raises(TSSTransportError) as e:
        TSSTransport(session=session).submit(TSSRequest())

    assert len(session.calls) == TSS_MAX_RETRIES == 15
    assert e.value.status is None
    assert e.value.attempts == 15
    assert sum(sleeps) >= 14 * 2
    assert sleeps == [2] * 14

    urls = [call['url'] for call in session.calls]
    for attempt, url in enumerate(urls, start=1):
        assert url == TSS_CONTROLLER_URLS[(attempt - 1) % 6]
    assert urls[6] == urls[12] == 'https://gs.apple.com/TSS/controller?action=2'
    assert urls[3] == 'http://gs.apple.com/TSS/controller?action=2'


def test_submit_transport_errors_are_retried(sleeps):
    session = FakeSession(requests.ConnectionError('connection refused'),
                          success_body({'APImg4Ticket': TICKET}))

    response = TSSTransport(session=session).submit(TSSRequest())

    assert response.ap_img4_ticket == TICKET
    assert len(session.calls) == 2
    assert session.calls[1]['url'] == TSS_CONTROLLER_URLS[1]
    assert sleeps == [2]


def test_submit_reports_last_transport_error(sleeps):
    session = FakeSession(requests.Timeout('read timed out'))
    with pytest.raises(TSSTransportError) as e:
        TSSTransport(session=session, max_retries=3).submit(TSSRequest())
    assert e.value.transport_error == 'read timed out'
    assert e.value.message is None
    assert len(session.calls) == 3


def test_submit_unhandled_status_retries_without_delay(sleeps):
    session = FakeSession(b'STATUS=5&MESSAGE=try again', success_body({'APImg4Ticket': TICKET}))

    response = TSSTransport(session=session).submit(TSSRequest())

    assert response.ap_img4_ticket == TICKET
    assert len(session.calls) == 2
    assert sleeps == []


def test_submit_unhandled_status_exhausts_retries(sleeps):
    session = FakeSession(b'STATUS=5&MESSAGE=try again')
    with pytest.raises(TSSTransportError) as e:
        TSSTransport(session=session).submit(TSSRequest())
    assert e.value.status == 5
    assert e.value.message == 'try again'
    assert len(session.calls) == 15
    assert sleeps == []


def test_submit_explicit_server_url(sleeps):
    server_url = 'http://localhost:8080/TSS/controller?action=2'
    session = FakeSession(b'', b'', success_body({'APImg4Ticket': TICKET}))

    TSSTransport(session=session).submit(TSSRequest(), server_url)

    assert [call['url'] for call in session.calls] == [server_url] * 3


def test_submit_success_without_plist(sleeps):
    session = FakeSession(b'STATUS=0&MESSAGE=SUCCESS')
    with pytest.raises(TSSProtocolError):
        TSSTransport(session=session).submit(TSSRequest())
    assert len(session.calls) == 1


def test_submit_success_with_broken_plist(sleeps):
    session = FakeSession(b'STATUS=0&MESSAGE=SUCCESS&REQUEST_STRING=<?xml version="1.0"?><plist><dict>')
    with pytest.raises(TSSProtocolError):
        TSSTransport(session=session).submit(TSSRequest())


def test_session_ownership():
    session = FakeSession(b'')
    with TSSTransport(session=session):
        pass
    assert not session.closed

    with TSSTransport(timeout=5) as transport:
        assert isinstance(transport.session, requests.Session)
        assert transport.timeout == 5
