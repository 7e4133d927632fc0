from adapters.client.sse_reader import Frame, SSEReader, parse_block, split_frames
from application.events import encode_frame

STREAM = (
    encode_frame("status", {"text": "Analyzing your query..."})
    + encode_frame("category", {"id": "c1", "label": "Budget", "products": [{"title": "ünïcode"}]})
    + encode_frame("summary", {"content": "Done.", "recommendations": []})
    + encode_frame("done", {"conversationId": "conv", "messageId": "msg"})
)


def _read_in_pieces(text, cuts):
    reader = SSEReader()
    frames = []
    for cut in cuts:
        frames += reader.feed(text[:cut])
    frames += reader.feed(text)
    frames += reader.close()
    return frames


def test_split_frames_keeps_trailing_partial_frame():
    frames, remainder = split_frames("", 'event: status\ndata: {"text": "a"}\n\nevent: sta')
    assert frames == [Frame("status", '{"text": "a"}')]
    assert remainder == "event: sta"


def test_split_frames_prepends_previous_remainder():
    frames, remainder = split_frames("event: sta", 'tus\ndata: {"text": "b"}\n\n')
    assert frames == [Frame("status", '{"text": "b"}')]
    assert remainder == ""


def test_parse_block_requires_event_and_data():
    assert parse_block("event: status") is None
    assert parse_block('data: {"x": 1}') is None
    assert parse_block(': comment only') is None


def test_single_feed_yields_all_frames():
    frames = _read_in_pieces(STREAM, [])
    assert [f.event for f in frames] == ["status", "category", "summary", "done"]


def test_every_single_split_point_gives_identical_frames():
    expected = _read_in_pieces(STREAM, [])
    for cut in range(len(STREAM) + 1):
        assert _read_in_pieces(STREAM, [cut]) == expected, f"split at {cut}"


def test_character_by_character_progress_gives_identical_frames():
    expected = _read_in_pieces(STREAM, [])
    assert _read_in_pieces(STREAM, range(len(STREAM) + 1)) == expected


def test_repeated_identical_progress_is_not_double_counted():
    reader = SSEReader()
    first = reader.feed(STREAM)
    assert reader.feed(STREAM) == []
    assert len(first) == 4


def test_close_forces_final_parse_of_unterminated_frame():
    reader = SSEReader()
    assert reader.feed('event: done\ndata: {"ok": true}') == []
    assert reader.pending.startswith("event: done")
    assert reader.close() == [Frame("done", '{"ok": true}')]
    assert reader.close() == []


def test_feed_chunk_accepts_incremental_text():
    reader = SSEReader()
    frames = []
    for i in range(0, len(STREAM), 7):
        frames += reader.feed_chunk(STREAM[i:i + 7])
    frames += reader.close()
    assert frames == _read_in_pieces(STREAM, [])


def test_parse_block_accepts_missing_space_and_comments():
    block = ': keep-alive\nevent:status\ndata:{"text": "a"}'
    assert parse_block(block) == Frame("status", '{"text": "a"}')


def test_parse_block_joins_multiple_data_lines():
    assert parse_block('event: summary\ndata: {"a":\ndata: 1}') == Frame("summary", '{"a":\n1}')


def test_crlf_stream_gives_identical_frames_at_every_split_point():
    crlf = STREAM.replace("\n", "\r\n")
    expected = _read_in_pieces(STREAM, [])
    for cut in range(len(crlf) + 1):
        assert _read_in_pieces(crlf, [cut]) == expected, f"split at {cut}"
