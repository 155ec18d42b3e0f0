from collections.abc import Callable
import logging
from time import monotonic
from xml.etree import ElementTree as ET

from defusedxml import DefusedXmlException
from defusedxml import ElementTree as SafeElementTree
import httpx

from chunkexec.config import Settings
from chunkexec.schemas import FailureKind, RemoteOutcome


logger = logging.getLogger(__name__)

SOAP_NS = "http://schemas.xmlsoap.org/soap/envelope/"
APEX_NS = "http://soap.sforce.com/2006/08/apex"
DEFAULT_TIMEOUT_SECONDS = 120.0
REQUEST_HEADERS = {
    "Content-Type": "text/xml; charset=UTF-8",
    "SOAPAction": '""',
}

ET.register_namespace("soapenv", SOAP_NS)
ET.register_namespace("apex", APEX_NS)


class _MissingNode(Exception):
    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name


class _BadValue(Exception):
    pass


def _soap(name: str) -> str:
    return f"{{{SOAP_NS}}}{name}"


def _apex(name: str) -> str:
    return f"{{{APEX_NS}}}{name}"


def service_url(instance_url: str, api_version: str) -> str:
    return f"{instance_url.rstrip('/')}/services/Soap/s/{api_version}"


def build_envelope(script: str, session_id: str) -> bytes:
    envelope = ET.Element(_soap("Envelope"))
    header = ET.SubElement(envelope, _soap("Header"))
    session_header = ET.SubElement(header, _apex("SessionHeader"))
    ET.SubElement(session_header, _apex("sessionId")).text = session_id

    body = ET.SubElement(envelope, _soap("Body"))
    call = ET.SubElement(body, _apex("executeAnonymous"))
    ET.SubElement(call, _apex("String")).text = script
    return ET.tostring(envelope, encoding="utf-8", xml_declaration=True)


def _require(parent, tag: str, name: str):
    child = parent.find(tag)
    if child is None:
        raise _MissingNode(name)
    return child


def _text(result, name: str, *, required: bool) -> str | None:
    child = result.find(_apex(name))
    if child is None:
        if required:
            raise _MissingNode(name)
        return None
    # xsi:nil elements come back empty.
    value = "".join(child.itertext()).strip()
    return value or None


def _flag(result, name: str) -> bool:
    value = (_text(result, name, required=True) or "").lower()
    if value not in ("true", "false"):
        raise _BadValue(f"invalid boolean in {name}: {value!r}")
    return value == "true"


def _malformed(reason: str) -> RemoteOutcome:
    return RemoteOutcome.failure(FailureKind.PROTOCOL_VIOLATION, f"malformed response: {reason}")


def parse_response(raw: bytes | str) -> RemoteOutcome:
    # Missing nodes and unreadable values are protocol violations, never exceptions.
    try:
        root = SafeElementTree.fromstring(raw)
    except (SafeElementTree.ParseError, DefusedXmlException) as exc:
        return _malformed(f"invalid XML ({exc})")

    try:
        if root.tag != _soap("Envelope"):
            raise _MissingNode("Envelope")
        body = _require(root, _soap("Body"), "Body")
        response = _require(body, _apex("executeAnonymousResponse"), "executeAnonymousResponse")
        result = _require(response, _apex("result"), "result")

        if _flag(result, "success"):
            return RemoteOutcome.success()

        compiled = _flag(result, "compiled")
        parts: list[str] = []
        message = _text(result, "exceptionMessage", required=False)
        if message:
            parts.append(f"exception: {message}")
        stack = _text(result, "exceptionStackTrace", required=False)
        if stack:
            parts.append(f"stack: {stack}")
        if not compiled:
            problem = _text(result, "compileProblem", required=True) or "unknown problem"
            line = _text(result, "line", required=True) or "?"
            column = _text(result, "column", required=True) or "?"
            parts.append(f"compile problem: {problem} (line {line}, column {column})")
    except _MissingNode as exc:
        return _malformed(f"missing {exc.name}")
    except _BadValue as exc:
        return _malformed(str(exc))

    detail = "; ".join(parts) or "remote execution failed without exception details"
    kind = FailureKind.REMOTE_RUNTIME if compiled else FailureKind.REMOTE_COMPILE
    return RemoteOutcome.failure(kind, detail)


class DeadlineExceeded(Exception):
    pass


class RemoteExecutionClient:
    def __init__(
        self,
        http_client: httpx.Client,
        *,
        url: str,
        session_provider: Callable[[], str],
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.http_client = http_client
        self.url = url
        self.session_provider = session_provider
        self.timeout_seconds = timeout_seconds
        self.timeout = httpx.Timeout(timeout_seconds)

    def _exchange(self, payload: bytes) -> tuple[int, bytes, str]:
        # Per-phase httpx timeouts restart on every byte; the deadline bounds the whole call.
        deadline = monotonic() + self.timeout_seconds
        with self.http_client.stream(
            "POST",
            self.url,
            content=payload,
            headers=REQUEST_HEADERS,
            timeout=self.timeout,
        ) as response:
            body = bytearray()
            for piece in response.iter_bytes():
                body.extend(piece)
                if monotonic() > deadline:
                    raise DeadlineExceeded(f"no complete response within {self.timeout_seconds:g}s")
            return response.status_code, bytes(body), response.encoding or "utf-8"

    def execute(self, script: str) -> RemoteOutcome:
        # One request per call; retrying is left to the caller.
        try:
            payload = build_envelope(script, self.session_provider())
            status_code, content, encoding = self._exchange(payload)
        except Exception as exc:
            logger.warning("remote execution transport failure", extra={"error": repr(exc)})
            return RemoteOutcome.failure(FailureKind.TRANSPORT, f"transport: {str(exc) or type(exc).__name__}")

        if not 200 <= status_code < 300:
            text = content.decode(encoding, errors="replace")
            return RemoteOutcome.failure(
                FailureKind.SERVER_STATUS,
                f"unexpected server response [{status_code}]: {text}",
            )

        return parse_response(content)

    def close(self) -> None:
        self.http_client.close()


def build_remote_client(settings: Settings, http_client: httpx.Client | None = None) -> RemoteExecutionClient:
    if not settings.session_id.strip():
        raise ValueError("SESSION_ID is not configured")

    session_id = settings.session_id
    return RemoteExecutionClient(
        http_client or httpx.Client(),
        url=service_url(settings.instance_url, settings.api_version),
        session_provider=lambda: session_id,
        timeout_seconds=settings.request_timeout_seconds,
    )
