import re
from typing import Dict, List, Mapping, Optional, Union
from dataclasses import dataclass, field

from .exceptions import MalformedRequestLine, DecodeFailure, ForwardFailure, ForwardTimeout

_LINE_BREAK = re.compile(r"\r\n|\r|\n")

CHUNK_HEADER = "[CHUNK {index}/{total}]\n"


def split_lines(text: str) -> List[str]:
    """
    Split text into lines the way a line reader does.

    Accepts \\n, \\r and \\r\\n as terminators. A terminator at the very end
    does not produce an extra empty line.
    """
    lines = _LINE_BREAK.split(text)
    if lines and lines[-1] == "":
        lines.pop()
    return lines


@dataclass
class DecodedRequest:
    """Model representing a pseudo-HTTP request carried in one datagram."""
    method: str
    target: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def from_raw_data(cls, request_data: Union[bytes, str]) -> 'DecodedRequest':
        """
        Create a DecodedRequest from the text of a datagram.

        Header lines without a colon, or with the colon first, are skipped.
        Without a blank line after the request line, everything that follows
        it is body.

        Raises:
            MalformedRequestLine: if the first line is missing or has no space
            DecodeFailure: on any other error
        """
        try:
            if isinstance(request_data, bytes):
                request_data = request_data.decode('utf-8', errors='replace')
            lines = split_lines(request_data)
        except Exception as e:
            raise DecodeFailure(str(e)) from e

        if not lines or ' ' not in lines[0]:
            raise MalformedRequestLine(lines[0] if lines else None)

        try:
            return cls._from_lines(lines)
        except Exception as e:
            raise DecodeFailure(str(e)) from e

    @classmethod
    def _from_lines(cls, lines: List[str]) -> 'DecodedRequest':
        # Parse request line
        method, target = lines[0].split(' ', 1)

        rest = lines[1:]
        blank = next((i for i, line in enumerate(rest) if not line.strip()), None)

        # Parse headers
        headers = {}
        if blank is None:
            body_lines = rest
        else:
            for line in rest[:blank]:
                colon = line.find(':')
                if colon > 0:
                    headers[line[:colon].strip()] = line[colon + 1:].strip()
            body_lines = rest[blank + 1:]

        return cls(
            method=method.strip(),
            target=target.strip(),
            headers=headers,
            body='\n'.join(body_lines).strip().encode('utf-8')
        )

    @staticmethod
    def encode(method: str, target: str,
               headers: Optional[Mapping[str, str]] = None,
               body: Union[bytes, str] = b"") -> bytes:
        """Build the datagram payload for a request."""
        if isinstance(body, str):
            body = body.encode('utf-8')
        head = f"{method} {target}\n"
        head += ''.join(f"{k}: {v}\n" for k, v in (headers or {}).items())
        return head.encode('utf-8') + b"\n" + body

    def to_datagram(self) -> bytes:
        return self.encode(self.method, self.target, self.headers, self.body)


@dataclass(frozen=True)
class ForwardResult:
    """Outcome of one forwarded request: a status and body, or an error."""
    status_code: Optional[int] = None
    body_text: str = ""
    error: Optional[ForwardFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, ForwardTimeout)

    @classmethod
    def failed(cls, error: ForwardFailure) -> 'ForwardResult':
        """Create a result for a request that never got a response."""
        return cls(error=error)

    def to_text(self) -> str:
        """Convert the result to the reply text sent back to the client."""
        if self.error is not None:
            return f"HTTP request failed: {self.error}"
        return f"HTTP {self.status_code}\n{self.body_text}".rstrip()


@dataclass(frozen=True)
class OutboundChunk:
    """One fragment of a reply, carried in its own datagram."""
    index: int
    total: int
    payload: bytes

    @property
    def header(self) -> bytes:
        return CHUNK_HEADER.format(index=self.index, total=self.total).encode('ascii')

    def to_datagram(self) -> bytes:
        return self.header + self.payload
