"""
adapters.client.sse_reader - Incremental event-stream frame reader.

Transport-free: it only ever sees text. Some transports expose nothing but
"the whole body received so far", so SSEReader.feed() accepts that
cumulative text and works out the new suffix itself.

A frame ends at a blank line. Whatever follows the last blank line is kept
as a possibly incomplete frame until more text arrives or close() forces
one final pass.
"""

from __future__ import annotations

from dataclasses import dataclass

FRAME_SEPARATOR = "\n\n"


@dataclass(frozen=True)
class Frame:
    event: str
    data: str


def parse_block(block: str) -> Frame | None:
    """Parse one frame block; blocks missing an event or data line are dropped.

    The space after the colon is optional and repeated data lines are
    joined with newlines. Lines starting with a colon are comments.
    """
    event = ""
    data: list[str] = []
    for line in block.split("\n"):
        name, _, value = line.rstrip("\r").partition(":")
        if value.startswith(" "):
            value = value[1:]
        if name == "event":
            event = value.strip()
        elif name == "data":
            data.append(value)
    if event and any(data):
        return Frame(event=event, data="\n".join(data))
    return None


def split_frames(buffer: str, new_text: str) -> tuple[list[Frame], str]:
    """(pending buffer, newly arrived text) -> (complete frames, new pending buffer)."""
    # CRLF line endings, e.g. from proxies; a lone trailing \r waits for its \n
    blocks = (buffer + new_text).replace("\r\n", "\n").split(FRAME_SEPARATOR)
    remainder = blocks.pop()
    frames = []
    for block in blocks:
        if not block.strip():
            continue
        frame = parse_block(block)
        if frame is not None:
            frames.append(frame)
    return frames, remainder


class SSEReader:
    """Reader state machine over a growing response body."""

    def __init__(self):
        self._consumed = 0
        self._buffer = ""
        self._closed = False

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, full_text: str) -> list[Frame]:
        """Accept the cumulative body so far and return newly completed frames."""
        if self._closed:
            return []
        new_text = full_text[self._consumed:]
        self._consumed = max(self._consumed, len(full_text))
        if not new_text:
            return []
        frames, self._buffer = split_frames(self._buffer, new_text)
        return frames

    def feed_chunk(self, chunk: str) -> list[Frame]:
        """Accept only the newly received text (for transports that stream)."""
        if self._closed or not chunk:
            return []
        self._consumed += len(chunk)
        frames, self._buffer = split_frames(self._buffer, chunk)
        return frames

    def close(self) -> list[Frame]:
        """End of stream: parse whatever is still buffered, once."""
        if self._closed:
            return []
        self._closed = True
        pending, self._buffer = self._buffer, ""
        if not pending.strip():
            return []
        frames, _ = split_frames(pending, FRAME_SEPARATOR)
        return frames
