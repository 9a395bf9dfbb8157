import numpy as np

from .errors import MalformedBitfieldError

N_TTL_CHANNELS = 16

# Some decoders hand back the 16-bit bitfield as a signed int16, so a lone
# bit 15 (0x8000) arrives as -32768.
_SIGNED_BIT15 = -32768
_UNSIGNED_BIT15 = 32768
_MAX_CODE = 0xFFFF


def expand_ttl_bitfield(codes):
    """Expand per-event TTL bitfields into an ``(m, 16)`` boolean state matrix.

    ``states[i, c]`` is bit ``c`` (0 = least significant) of ``codes[i]``,
    i.e. whether digital input ``c`` is high right after event ``i``.

    A code of exactly -32768 is read as 32768 (bit 15 only).  Any other value
    outside 0..65535, or a non-integral value, raises
    :class:`MalformedBitfieldError` rather than being truncated.
    """
    codes = np.asarray(codes)
    if codes.ndim != 1:
        raise MalformedBitfieldError(
            f"TTL codes must be one-dimensional, got shape {codes.shape}"
        )

    if codes.size == 0:
        return np.zeros((0, N_TTL_CHANNELS), dtype=bool)

    if codes.dtype.kind == "f":
        # Vendor importers report the bitfield as double
        integral = np.isfinite(codes) & (codes == np.round(codes))
        if not np.all(integral):
            i = int(np.flatnonzero(~integral)[0])
            raise MalformedBitfieldError(
                f"TTL code at event {i} is not an integer: {codes[i]!r}"
            )
    elif codes.dtype.kind not in "iu":
        raise MalformedBitfieldError(
            f"TTL codes must be integers, got dtype {codes.dtype}"
        )

    # Range check before the int64 cast, which would wrap large uint64 values
    if codes.dtype.kind == "u":
        codes = codes.astype(np.uint64)
        bad = codes > _MAX_CODE
    else:
        if codes.dtype.kind == "i":
            codes = codes.astype(np.int64)
        bad = ((codes < 0) & (codes != _SIGNED_BIT15)) | (codes > _MAX_CODE)
    if np.any(bad):
        i = int(np.flatnonzero(bad)[0])
        raise MalformedBitfieldError(
            f"TTL code at event {i} is outside the unsigned 16-bit range: "
            f"{int(codes[i])}"
        )

    codes = codes.astype(np.int64)
    codes = np.where(codes == _SIGNED_BIT15, _UNSIGNED_BIT15, codes)

    bits = np.arange(N_TTL_CHANNELS, dtype=np.int64)
    return ((codes[:, np.newaxis] >> bits) & 1).astype(bool)
