"""
Tests for the multiplexed log stream parser.

Frames may be split across chunks or packed several to a chunk; every frame
must come out tagged with the channel it was written to.
"""

from conftest import frame
from relay.demux import Channel, FrameDemuxer, PassthroughDecoder


class TestFrameDemuxer:
    """FrameDemuxer.feed() / flush()"""

    def test_single_stdout_frame(self):
        demuxer = FrameDemuxer()

        assert demuxer.feed(frame(1, b"hello\n")) == [(Channel.STDOUT, "hello\n")]

    def test_stderr_frame(self):
        demuxer = FrameDemuxer()

        assert demuxer.feed(frame(2, b"boom\n")) == [(Channel.STDERR, "boom\n")]

    def test_stdin_echo_reported_on_stdout_and_system_error_on_stderr(self):
        demuxer = FrameDemuxer()

        messages = demuxer.feed(frame(0, b"in") + frame(3, b"daemon error"))

        assert messages == [(Channel.STDOUT, "in"), (Channel.STDERR, "daemon error")]

    def test_several_frames_in_one_chunk_keep_order(self):
        demuxer = FrameDemuxer()
        chunk = frame(1, b"a\n") + frame(2, b"b\n") + frame(1, b"c\n")

        messages = demuxer.feed(chunk)

        assert messages == [
            (Channel.STDOUT, "a\n"),
            (Channel.STDERR, "b\n"),
            (Channel.STDOUT, "c\n"),
        ]

    def test_frame_split_inside_header(self):
        demuxer = FrameDemuxer()
        data = frame(2, b"split header\n")

        assert demuxer.feed(data[:3]) == []
        assert demuxer.pending_bytes == 3
        assert demuxer.feed(data[3:]) == [(Channel.STDERR, "split header\n")]
        assert demuxer.pending_bytes == 0

    def test_frame_split_inside_payload(self):
        demuxer = FrameDemuxer()
        data = frame(1, b"split payload\n")

        assert demuxer.feed(data[:12]) == []
        assert demuxer.feed(data[12:]) == [(Channel.STDOUT, "split payload\n")]

    def test_byte_at_a_time(self):
        demuxer = FrameDemuxer()
        data = frame(1, b"out\n") + frame(2, b"err\n")

        messages = []
        for i in range(len(data)):
            messages.extend(demuxer.feed(data[i:i + 1]))

        assert messages == [(Channel.STDOUT, "out\n"), (Channel.STDERR, "err\n")]

    def test_empty_frames_are_skipped(self):
        demuxer = FrameDemuxer()

        assert demuxer.feed(frame(1, b"") + frame(2, b"x")) == [(Channel.STDERR, "x")]

    def test_multibyte_character_split_across_frames_is_reassembled(self):
        demuxer = FrameDemuxer()
        encoded = "héllo".encode("utf-8")  # é is two bytes: c3 a9

        first = demuxer.feed(frame(1, encoded[:2]))
        second = demuxer.feed(frame(1, encoded[2:]))

        assert first == [(Channel.STDOUT, "h")]
        assert second == [(Channel.STDOUT, "éllo")]

    def test_channels_decode_independently(self):
        demuxer = FrameDemuxer()
        encoded = "é".encode("utf-8")

        messages = demuxer.feed(frame(1, encoded[:1]) + frame(2, b"err") + frame(1, encoded[1:]))

        assert messages == [(Channel.STDERR, "err"), (Channel.STDOUT, "é")]

    def test_invalid_utf8_is_replaced(self):
        demuxer = FrameDemuxer()

        assert demuxer.feed(frame(1, b"bad \xff byte")) == [(Channel.STDOUT, "bad � byte")]

    def test_unknown_stream_type_is_skipped(self):
        demuxer = FrameDemuxer()

        assert demuxer.feed(frame(7, b"junk") + frame(1, b"ok")) == [(Channel.STDOUT, "ok")]

    def test_flush_discards_truncated_frame(self):
        demuxer = FrameDemuxer()
        demuxer.feed(frame(1, b"never finished")[:10])

        assert demuxer.flush() == []
        assert demuxer.pending_bytes == 0

    def test_flush_emits_dangling_partial_character(self):
        demuxer = FrameDemuxer()
        demuxer.feed(frame(2, "é".encode("utf-8")[:1]))

        assert demuxer.flush() == [(Channel.STDERR, "�")]


class TestPassthroughDecoder:
    """TTY streams carry no headers and are all stdout"""

    def test_chunk_is_one_stdout_message(self):
        decoder = PassthroughDecoder()

        assert decoder.feed(b"raw tty output\r\n") == [(Channel.STDOUT, "raw tty output\r\n")]

    def test_split_character_is_held_until_complete(self):
        decoder = PassthroughDecoder()
        encoded = "ü".encode("utf-8")

        assert decoder.feed(encoded[:1]) == []
        assert decoder.feed(encoded[1:]) == [(Channel.STDOUT, "ü")]
        assert decoder.flush() == []


def test_channel_prefixes():
    assert Channel.STDOUT.prefix == "OUT "
    assert Channel.STDERR.prefix == "ERR "
