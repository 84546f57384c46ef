"""Image format detection from structural signatures.

File extensions and declared content types are ignored: only the leading
bytes of the payload decide the kind.
"""

from __future__ import annotations

from enum import Enum


class ImageKind(str, Enum):
    """Image formats accepted by the ingestion pipeline."""

    JPEG = "image/jpeg"
    PNG = "image/png"
    HEIC = "image/heic"
    HEIF = "image/heif"

    @property
    def mime(self) -> str:
        return self.value

    @property
    def is_decodable(self) -> bool:
        """Whether the kind can be decoded without transcoding."""

        return self in (ImageKind.JPEG, ImageKind.PNG)


_JPEG_MAGIC = b"\xff\xd8\xff"
_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"

# ISO base media file format brands (ftyp box)
_HEIC_BRANDS = frozenset({b"heic", b"heix", b"heim", b"heis", b"hevc", b"hevx", b"hevm", b"hevs"})
_HEIF_BRANDS = frozenset({b"mif1", b"msf1"})
_AVIF_BRANDS = frozenset({b"avif", b"avis"})


def _sniff_ftyp(data: bytes) -> ImageKind | None:
    if len(data) < 12 or data[4:8] != b"ftyp":
        return None

    major = data[8:12]
    if major in _AVIF_BRANDS:
        return None
    if major in _HEIC_BRANDS:
        return ImageKind.HEIC
    if major in _HEIF_BRANDS:
        return ImageKind.HEIF

    # box size (big-endian) bounds the compatible brand list after minor_version
    box_size = int.from_bytes(data[0:4], "big")
    end = min(box_size, len(data))
    compatible = [data[offset : offset + 4] for offset in range(16, end - 3, 4)]
    kind = None
    for brand in compatible:
        # AVIF also advertises mif1; it wins unless a HEIC brand comes first
        if brand in _AVIF_BRANDS:
            return None
        if brand in _HEIC_BRANDS:
            return ImageKind.HEIC
        if brand in _HEIF_BRANDS:
            kind = ImageKind.HEIF
    return kind


def sniff(data: bytes) -> ImageKind | None:
    """Return the recognised image kind, or ``None`` when *data* is not an image."""

    if not data:
        return None
    if data.startswith(_JPEG_MAGIC):
        return ImageKind.JPEG
    if data.startswith(_PNG_MAGIC):
        return ImageKind.PNG
    return _sniff_ftyp(data)
