import logging
import re
import time
import typing

import requests
import urllib3
from urllib3.exceptions import InsecureRequestWarning

from pytss.document import extract_payload, parse, serialize
from pytss.exceptions import TSSProtocolError, TSSTransportError
from pytss.request import TSSRequest
from pytss.response import TSSResponse

TSS_CONTROLLER_URLS = (
    "https://gs.apple.com/TSS/controller?action=2",
    "https://17.171.36.30/TSS/controller?action=2",
    "https://17.151.36.30/TSS/controller?action=2",
    "http://gs.apple.com/TSS/controller?action=2",
    "http://17.171.36.30/TSS/controller?action=2",
    "http://17.151.36.30/TSS/controller?action=2",
)

TSS_MAX_RETRIES = 15
TSS_RETRY_DELAY = 2
TSS_USER_AGENT = "InetURL/1.0"

TSS_HEADERS = {
    "Cache-Control": "no-cache",
    "Content-type": 'text/xml; charset="utf-8"',
    "User-Agent": TSS_USER_AGENT,
    # suppress 100-continue negotiation
    "Expect": "",
}

SUCCESS_MARKER = b"MESSAGE=SUCCESS"
MESSAGE_MARKER = b"MESSAGE="
STATUS_PATTERN = re.compile(rb"STATUS=(\d+)")

# statuses after which retrying cannot help
FATAL_STATUS_CODES = {
    8: "server error (invalid baseband request?)",
    49: "server error (invalid baseband data, e.g. BbSNUM?)",
    94: "this device isn't eligible for the requested build",
    100: "server error, most likely the request was malformed",
}

# the pinned IP endpoints don't match the certificate of gs.apple.com
urllib3.disable_warnings(InsecureRequestWarning)

logger = logging.getLogger(__name__)


def parse_status(content: bytes) -> typing.Optional[int]:
    match = STATUS_PATTERN.search(content)
    if match is None:
        return None
    return int(match.group(1))


def parse_message(content: bytes) -> typing.Optional[str]:
    if MESSAGE_MARKER not in content:
        return None
    return content.split(MESSAGE_MARKER, 1)[1].split(b"&", 1)[0].decode(errors="replace")


class TSSTransport:
    """
    Submits TSS requests, failing over between the known controller endpoints.

    The session is owned by the caller when passed in; otherwise one is created and closed by ``close()``.
    """

    def __init__(self, session: typing.Optional[requests.Session] = None,
                 urls: typing.Sequence[str] = TSS_CONTROLLER_URLS, max_retries: int = TSS_MAX_RETRIES,
                 retry_delay: float = TSS_RETRY_DELAY, timeout: typing.Optional[float] = None):
        self._owns_session = session is None
        self.session = requests.Session() if session is None else session
        self.urls = tuple(urls)
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.timeout = timeout

    def __enter__(self) -> "TSSTransport":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_session:
            self.session.close()

    def _post(self, url: str, body: bytes) -> tuple[bytes, typing.Optional[str]]:
        try:
            response = self.session.post(url, data=body, headers=TSS_HEADERS, verify=False, timeout=self.timeout)
        except requests.RequestException as e:
            return b"", str(e)
        return response.content, None

    def submit(self, request: typing.Union[TSSRequest, typing.Mapping],
               server_url: typing.Optional[str] = None) -> TSSResponse:
        """
        Send a TSS request and return the parsed response.

        :param request: request built by ``TSSRequest`` or an equivalent plain document
        :param server_url: target every attempt at this URL instead of cycling ``urls``
        :raises TSSTransportError: retries exhausted or the server rejected the request
        :raises TSSProtocolError: the server reported success without a property list payload
        """
        document = request.as_dict() if isinstance(request, TSSRequest) else dict(request)
        logger.debug(document)
        body = serialize(document)

        content = b""
        status = None
        transport_error = None
        attempt = 0

        while attempt < self.max_retries:
            attempt += 1
            url = server_url if server_url is not None else self.urls[(attempt - 1) % len(self.urls)]
            logger.info(f"Sending TSS request attempt {attempt} to {url}...")

            content, transport_error = self._post(url, body)

            if SUCCESS_MARKER in content:
                logger.info("response successfully received")
                return self._parse_response(content)

            if content:
                logger.error(f"TSS server returned: {content.decode(errors='replace')}")

            status = parse_status(content)
            if status is None:
                # no status code in response, presumably transient
                logger.error(transport_error or "no status code in TSS response")
                if attempt < self.max_retries:
                    time.sleep(self.retry_delay)
                continue

            if status in FATAL_STATUS_CODES:
                logger.error(FATAL_STATUS_CODES[status])
                break

            logger.error(f"Unhandled status code {status}")

        message = parse_message(content)
        if message is not None:
            logger.error(f"TSS request failed (status={status}, message={message})")
        else:
            logger.error(f"TSS request failed: {transport_error} (status={status})")
        raise TSSTransportError(status, message, transport_error, attempt)

    @staticmethod
    def _parse_response(content: bytes) -> TSSResponse:
        payload = extract_payload(content)
        if payload is None:
            logger.error("Incorrectly formatted TSS response")
            raise TSSProtocolError("TSS response doesn't contain a property list")

        try:
            response = TSSResponse(parse(payload))
        except ValueError as e:
            logger.error("Incorrectly formatted TSS response")
            raise TSSProtocolError(str(e)) from e

        logger.debug(response)
        return response
