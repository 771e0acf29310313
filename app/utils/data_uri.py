import base64
import binascii
import re
from typing import Optional, Tuple

DATA_URI_PATTERN = re.compile(r"^data:(.+?);base64,(.+)$", re.DOTALL)
IMAGE_DATA_URI_PATTERN = re.compile(r"^data:(image/.+?);base64,(.+)$", re.DOTALL)


def split_data_uri(uri: str, pattern=DATA_URI_PATTERN) -> Optional[Tuple[str, str]]:
    """data URI -> (mime_type, base64 payload), 형식이 다르면 None"""
    match = pattern.match(uri)
    if not match:
        return None
    return match.group(1), match.group(2)


def decode_image_data_uri(uri: str) -> Optional[Tuple[str, bytes]]:
    """
    data:image/*;base64,... -> (mime_type, bytes)
    이미지가 아니거나 base64 디코딩 실패시 None
    """
    parts = split_data_uri(uri, IMAGE_DATA_URI_PATTERN)
    if not parts:
        return None
    mime_type, payload = parts
    try:
        return mime_type, base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        return None


def build_data_uri(mime_type: str, payload: str) -> str:
    return f"data:{mime_type};base64,{payload}"
