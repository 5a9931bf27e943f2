"""Per-channel unit costs and SMS segment counting.

Costs are integer micro-units (millionths of a currency unit).
"""

from modules.dispatch.domain.types import Channel

COST_MICROS_PER_UNIT = {
    Channel.EMAIL: 950,
    Channel.SMS: 7900,
    Channel.PUSH: 0,
    Channel.IN_APP: 0,
}

# GSM 03.38 basic character set plus the extension table (which counts double)
GSM7_BASIC = frozenset(
    "@£$¥èéùìòÇ\nØø\rÅåΔ_ΦΓΛΩΠΨΣΘΞÆæßÉ !\"#¤%&'()*+,-./0123456789:;<=>?"
    "¡ABCDEFGHIJKLMNOPQRSTUVWXYZÄÖÑÜ§¿abcdefghijklmnopqrstuvwxyzäöñüà"
)
GSM7_EXTENDED = frozenset("^{}\\[~]|€\f")

GSM7_SINGLE, GSM7_MULTIPART = 160, 153
UCS2_SINGLE, UCS2_MULTIPART = 70, 67


def _gsm7_length(body: str) -> int | None:
    """Length in GSM-7 septets, or None if the body needs UCS-2."""
    length = 0
    for char in body:
        if char in GSM7_BASIC:
            length += 1
        elif char in GSM7_EXTENDED:
            length += 2
        else:
            return None
    return length


def count_sms_segments(body: str) -> int:
    """Number of SMS segments needed to carry ``body``.

    GSM-7 bodies fit 160 characters in one segment or 153 per segment when
    concatenated; anything else is sent as UCS-2 at 70/67.
    """
    gsm_length = _gsm7_length(body)
    if gsm_length is not None:
        length, single, multipart = gsm_length, GSM7_SINGLE, GSM7_MULTIPART
    else:
        # UTF-16 code units: characters outside the BMP take two
        length = len(body.encode("utf-16-le")) // 2
        single, multipart = UCS2_SINGLE, UCS2_MULTIPART

    if length <= single:
        return 1
    return -(-length // multipart)


def unit_count(channel: Channel, body: str) -> int:
    """Billable units of a message: SMS segments, otherwise 1."""
    if channel == Channel.SMS:
        return count_sms_segments(body)
    return 1


def estimate_cost_micros(channel: Channel, units: int = 1) -> int:
    """Cost of ``units`` messages on ``channel``; unknown channels are free."""
    return COST_MICROS_PER_UNIT.get(channel, 0) * max(units, 1)
