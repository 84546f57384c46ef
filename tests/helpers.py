"""In-memory images and collaborator doubles used across tests."""

from __future__ import annotations

from io import BytesIO

import numpy as np
from PIL import Image

from facematch.imgproc.heif import TranscodeError
from facematch.imgproc.sniff import ImageKind

DIMENSION = 4

# minimal ISO-BMFF ftyp box announcing HEIC
HEIC_HEADER = (24).to_bytes(4, "big") + b"ftypheic" + b"\x00\x00\x00\x00" + b"mif1heic"


def make_image(color: tuple[int, int, int], fmt: str = "JPEG", size: tuple[int, int] = (32, 32)) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


class FakeFaceModel:
    """Embeds an image as its mean BGR colour plus a constant component.

    Pure black images have no face.
    """

    def __init__(self) -> None:
        self.loaded = False
        self.calls = 0

    def load(self) -> None:
        self.loaded = True

    def describe(self, image: np.ndarray) -> np.ndarray | None:
        self.calls += 1
        mean = image.reshape(-1, 3).mean(axis=0) / 255.0
        if not mean.any():
            return None
        return np.concatenate([mean, [1.0]])


class FakeTranscoder:
    """Returns a prepared JPEG for HEIC input, or fails when none is set."""

    def __init__(self, output: bytes | None = None) -> None:
        self.output = output
        self.calls: list[ImageKind] = []

    def transcode(self, data: bytes, kind: ImageKind) -> bytes:
        self.calls.append(kind)
        if self.output is None:
            raise TranscodeError("corrupt HEIC payload")
        return self.output
