from typing import Optional, Union
from polysplit.domain.models import EncodingSpec

DEFAULT_ENCODING = EncodingSpec.PCM_S32LE

_FORMAT_RULES = (
    ("s16", EncodingSpec.PCM_S16LE),
    ("s24", EncodingSpec.PCM_S24LE),
    ("s32", EncodingSpec.PCM_S32LE),
    ("flt", EncodingSpec.PCM_F32LE),
    ("dbl", EncodingSpec.PCM_F64LE),
)


def _bit_depth(value: Union[int, str, None]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


def select_codec(sample_format: Optional[str], bits_per_sample: Union[int, str, None]) -> EncodingSpec:
    """Maps probed sample format and bit depth to the matching PCM encoder.

    The bit depth wins over the sample format when both are known; a 32-bit
    float stream resolves to pcm_f32le. Never fails: unknown input falls
    through to pcm_s32le.
    """
    fmt = (sample_format or "").lower()
    codec = DEFAULT_ENCODING
    for needle, encoding in _FORMAT_RULES:
        if needle in fmt:
            codec = encoding
            break

    bits = _bit_depth(bits_per_sample)
    if bits == 16:
        codec = EncodingSpec.PCM_S16LE
    elif bits == 24:
        codec = EncodingSpec.PCM_S24LE
    elif bits == 32:
        codec = EncodingSpec.PCM_F32LE if "flt" in fmt else EncodingSpec.PCM_S32LE
    return codec
