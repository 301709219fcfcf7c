"""
工具函数模块
提供内容类型探测与镜像引用解析
"""

import json
from typing import Optional

# 只检查前 512 字节，与 WHATWG MIME sniffing 一致
SNIFF_LEN = 512

TEXT_PLAIN = "text/plain; charset=utf-8"
OCTET_STREAM = "application/octet-stream"
APPLICATION_JSON = "application/json"

_HTML_PREFIXES = (
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
)

_EXACT_SIGNATURES = (
    (b"%PDF-", "application/pdf"),
    (b"%!PS-Adobe-", "application/postscript"),
    (b"\xfe\xff", "text/plain; charset=utf-16be"),
    (b"\xff\xfe", "text/plain; charset=utf-16le"),
    (b"\xef\xbb\xbf", TEXT_PLAIN),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"BM", "image/bmp"),
    (b"\x00\x00\x01\x00", "image/x-icon"),
    (b"OggS\x00", "application/ogg"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
    (b"PK\x03\x04", "application/zip"),
    (b"Rar!\x1a\x07\x00", "application/x-rar-compressed"),
    (b"Rar!\x1a\x07\x01\x00", "application/x-rar-compressed"),
    (b"\x00asm", "application/wasm"),
)

# 出现即视为二进制内容的控制字符
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)


def _is_ws(b: int) -> bool:
    return b in (0x09, 0x0A, 0x0C, 0x0D, 0x20)


def _match_html(data: bytes) -> bool:
    for prefix in _HTML_PREFIXES:
        if len(data) < len(prefix) + 1:
            continue
        if data[: len(prefix)].upper() != prefix:
            continue
        # 标签后必须跟空格或 '>'
        if data[len(prefix)] in (0x20, 0x3E):
            return True
    return False


def detect_content_type(data: bytes) -> str:
    """
    按字节内容推断 MIME 类型

    Args:
        data: 原始响应体

    Returns:
        MIME 类型字符串，无法识别时返回 text/plain 或 application/octet-stream
    """
    head = data[:SNIFF_LEN]

    start = 0
    while start < len(head) and _is_ws(head[start]):
        start += 1
    stripped = head[start:]

    if _match_html(stripped):
        return "text/html; charset=utf-8"
    if stripped.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"

    for signature, mime in _EXACT_SIGNATURES:
        if head.startswith(signature):
            return mime

    if head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    if head[:4] == b"RIFF" and head[8:12] == b"WAVE":
        return "audio/wave"

    if any(b in _BINARY_BYTES for b in head):
        return OCTET_STREAM
    return TEXT_PLAIN


def get_content_type(data: bytes) -> str:
    """响应体是合法 JSON 时返回 application/json，否则按内容嗅探。"""
    if data:
        try:
            json.loads(data)
        except (ValueError, RecursionError):
            pass
        else:
            return APPLICATION_JSON
    return detect_content_type(data)


def parse_image_tag(image: Optional[str]) -> str:
    """
    从镜像引用中提取 tag

    Args:
        image: 镜像引用，如 "gcr.io/x/controller:v0.9.0@sha256:abcd"

    Returns:
        tag 字符串，如 "v0.9.0"；没有 tag 时返回空字符串
    """
    if not image:
        return ""
    reference = image.split("@", 1)[0]
    # registry 端口中的 ':' 不算 tag 分隔符
    last_segment = reference.rsplit("/", 1)[-1]
    if ":" not in last_segment:
        return ""
    return last_segment.rsplit(":", 1)[1]
