"""Minimal NTP (RFC 5905) client packet codec.

Only the fields a single-shot SNTP-style client needs are handled::

    byte 0        LI | VN | Mode     request: 0x1B = 00 011 011
                                     (no leap warning, v3, client)
    bytes 40-43   transmit timestamp, seconds since 1900 (uint32 BE)
    bytes 44-47   transmit timestamp, fraction of a second (uint32 BE)

All arithmetic is integer milliseconds, so known test vectors decode
exactly.
"""

from __future__ import annotations

import struct

PACKET_SIZE = 48
CLIENT_REQUEST_HEADER = 0x1B
SERVER_REPLY_HEADER = 0x1C
"""LI 0, version 3, mode 4 (server)."""

TRANSMIT_TIMESTAMP_OFFSET = 40

NTP_TO_UNIX_MS = 2_208_988_800_000
"""Milliseconds between 1900-01-01 and 1970-01-01."""

_FRACTION_SCALE = 1 << 32
_TIMESTAMP = struct.Struct("!II")


class NtpPacketError(ValueError):
    """Raised when a datagram cannot be decoded as an NTP reply."""


def build_request() -> bytearray:
    """Return a fresh 48-byte client request buffer."""
    buffer = bytearray(PACKET_SIZE)
    buffer[0] = CLIENT_REQUEST_HEADER
    return buffer


def transmit_timestamp_ms(reply: bytes | bytearray | memoryview) -> int:
    """Decode the server transmit timestamp in NTP-epoch milliseconds.

    Raises:
        NtpPacketError: If *reply* is shorter than a full packet.
    """
    if len(reply) < PACKET_SIZE:
        raise NtpPacketError(
            f"NTP reply too short: {len(reply)} bytes, expected {PACKET_SIZE}"
        )
    seconds, fraction = _TIMESTAMP.unpack_from(reply, TRANSMIT_TIMESTAMP_OFFSET)
    return seconds * 1000 + fraction * 1000 // _FRACTION_SCALE


def compute_time_now(
    reply: bytes | bytearray | memoryview,
    half_round_trip_ms: int,
) -> int:
    """Unix milliseconds at receipt of *reply*.

    The server's transmit time is moved to the Unix epoch and advanced
    by half the measured round trip, assuming symmetric network delay.
    The result may be non-positive for corrupt replies; callers must
    reject those.
    """
    return transmit_timestamp_ms(reply) - NTP_TO_UNIX_MS + half_round_trip_ms


def build_reply(unix_ms: int) -> bytes:
    """Encode a server reply whose transmit timestamp is *unix_ms*.

    Values that fall outside the 32-bit NTP era are wrapped modulo
    2**32 seconds, which is how a real server would roll over.
    """
    ntp_ms = unix_ms + NTP_TO_UNIX_MS
    seconds, millis = divmod(ntp_ms, 1000)
    # Round up so that decoding truncates back to the same millisecond.
    fraction = -(-millis * _FRACTION_SCALE // 1000)
    packet = bytearray(PACKET_SIZE)
    packet[0] = SERVER_REPLY_HEADER
    _TIMESTAMP.pack_into(
        packet,
        TRANSMIT_TIMESTAMP_OFFSET,
        seconds % _FRACTION_SCALE,
        min(fraction, _FRACTION_SCALE - 1),
    )
    return bytes(packet)
