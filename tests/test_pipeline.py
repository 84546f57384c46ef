"""End-to-end tests for the ingestion pipeline with fake collaborators."""

from __future__ import annotations

import asyncio
import threading
import time
from io import BytesIO

import numpy as np
import pytest
from PIL import Image
from prometheus_client import REGISTRY

from facematch.api.main import build_pipeline
from facematch.config.settings import Settings
from facematch.imgproc.heif import HeifTranscoder
from facematch.imgproc.sniff import ImageKind, sniff
from facematch.recognition import EmbeddingStore, Identified, Unknown
from facematch.services.failures import FailureKind, StageFailure
from facematch.services.pipeline import EnrollResult
from helpers import DIMENSION, HEIC_HEADER, FakeFaceModel, FakeTranscoder, make_image


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"", b"not an image at all", bytearray(), None, "text"])
async def test_non_images_fail_cleanly(settings: Settings, face_model: FakeFaceModel, body) -> None:
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder())

    enrolled = await pipeline.enroll(body, "alice")
    resolved = await pipeline.resolve(body)

    for result in (enrolled, resolved):
        assert isinstance(result, StageFailure)
        assert result.kind in {FailureKind.INVALID_INPUT, FailureKind.UNRECOGNIZED_FORMAT}
    assert face_model.calls == 0
    assert pipeline.store.size() == 0


@pytest.mark.asyncio
async def test_oversized_body_is_rejected(face_model: FakeFaceModel) -> None:
    settings = Settings(embedding_dimension=DIMENSION, max_upload_bytes=64)
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder())

    result = await pipeline.resolve(make_image((255, 0, 0), size=(64, 64)))

    assert isinstance(result, StageFailure)
    assert result.kind is FailureKind.PAYLOAD_TOO_LARGE


@pytest.mark.asyncio
@pytest.mark.parametrize("label", [None, "", "   "])
async def test_enroll_requires_label(settings: Settings, face_model: FakeFaceModel, red_jpeg: bytes, label) -> None:
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder())

    result = await pipeline.enroll(red_jpeg, label)

    assert isinstance(result, StageFailure)
    assert result.kind is FailureKind.INVALID_INPUT
    assert face_model.calls == 0


@pytest.mark.asyncio
async def test_resolve_on_empty_store_is_unknown(settings: Settings, face_model: FakeFaceModel, red_jpeg: bytes) -> None:
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder())

    assert await pipeline.resolve(red_jpeg) == Unknown()


@pytest.mark.asyncio
async def test_enroll_then_resolve(settings: Settings, face_model: FakeFaceModel, red_jpeg: bytes, blue_jpeg: bytes) -> None:
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder())

    assert await pipeline.enroll(red_jpeg, " alice ") == EnrollResult(label="alice", entries=1)
    assert await pipeline.enroll(blue_jpeg, "bob") == EnrollResult(label="bob", entries=2)

    near_red = await pipeline.resolve(make_image((250, 5, 5)))
    green = await pipeline.resolve(make_image((0, 255, 0), fmt="PNG"))

    assert isinstance(near_red, Identified)
    assert near_red.label == "alice"
    assert near_red.distance <= settings.match_threshold
    assert isinstance(green, Unknown)


@pytest.mark.asyncio
async def test_no_face_does_not_enroll(settings: Settings, face_model: FakeFaceModel, black_png: bytes) -> None:
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder())

    result = await pipeline.enroll(black_png, "ghost")

    assert isinstance(result, StageFailure)
    assert result.kind is FailureKind.NO_FACE_DETECTED
    assert pipeline.store.size() == 0


@pytest.mark.asyncio
async def test_heic_matches_equivalent_jpeg(settings: Settings, face_model: FakeFaceModel, red_jpeg: bytes) -> None:
    transcoder = FakeTranscoder(output=red_jpeg)
    pipeline = build_pipeline(settings, model=face_model, transcoder=transcoder)

    from_heic = await pipeline.extract(HEIC_HEADER)
    from_jpeg = await pipeline.extract(red_jpeg)

    assert transcoder.calls != []
    assert np.allclose(from_heic, from_jpeg)


@pytest.mark.asyncio
async def test_malformed_heic_aborts_before_extraction(settings: Settings, face_model: FakeFaceModel) -> None:
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder(output=None))

    result = await pipeline.enroll(HEIC_HEADER, "alice")

    assert isinstance(result, StageFailure)
    assert result.kind is FailureKind.CONVERSION_FAILURE
    assert face_model.calls == 0
    assert pipeline.store.size() == 0


@pytest.mark.asyncio
async def test_concurrent_enrolls_are_lossless(settings: Settings, face_model: FakeFaceModel) -> None:
    pipeline = build_pipeline(settings, model=face_model, transcoder=FakeTranscoder())
    images = [make_image((10 * i, 100, 200)) for i in range(20)]

    results = await asyncio.gather(*(pipeline.enroll(image, f"user-{i}") for i, image in enumerate(images)))

    assert all(isinstance(result, EnrollResult) for result in results)
    assert pipeline.store.size() == len(images)


class _SlowModel(FakeFaceModel):
    def describe(self, image):
        time.sleep(0.5)
        return super().describe(image)


@pytest.mark.asyncio
async def test_slow_extraction_times_out(red_jpeg: bytes) -> None:
    settings = Settings(embedding_dimension=DIMENSION, extraction_timeout=0.05)
    pipeline = build_pipeline(settings, model=_SlowModel(), transcoder=FakeTranscoder())

    result = await pipeline.resolve(red_jpeg)

    assert isinstance(result, StageFailure)
    assert result.kind is FailureKind.EXTRACTION_TIMEOUT
    assert result.is_internal


@pytest.mark.asyncio
async def test_real_heic_matches_jpeg_of_same_colour(settings: Settings, face_model: FakeFaceModel) -> None:
    buffer = BytesIO()
    Image.new("RGB", (64, 64), (200, 40, 40)).save(buffer, format="HEIF")
    heic = buffer.getvalue()
    jpeg = make_image((200, 40, 40), size=(64, 64))
    pipeline = build_pipeline(settings, model=face_model)

    from_heic = await pipeline.extract(heic)
    from_jpeg = await pipeline.extract(jpeg)

    assert sniff(heic) is ImageKind.HEIC
    assert not isinstance(from_heic, StageFailure)
    # both codecs are lossy, so allow a few intensity levels of drift
    assert np.allclose(from_heic, from_jpeg, atol=0.03)


def test_heif_transcoder_output_is_jpeg() -> None:
    buffer = BytesIO()
    Image.new("RGB", (64, 64), (10, 200, 10)).save(buffer, format="HEIF")

    converted = HeifTranscoder().transcode(buffer.getvalue(), ImageKind.HEIC)

    assert sniff(converted) is ImageKind.JPEG


def test_store_gauge_reflects_prepopulated_store(settings: Settings, face_model: FakeFaceModel) -> None:
    store = EmbeddingStore(DIMENSION)
    for index in range(3):
        store.enroll(f"user-{index}", [float(index), 0.0, 0.0, 1.0])

    build_pipeline(settings, model=face_model, store=store)

    assert REGISTRY.get_sample_value("facematch_store_entries") == 3


class _ThreadRecordingModel(FakeFaceModel):
    def __init__(self) -> None:
        super().__init__()
        self.thread_names: list[str] = []

    def describe(self, image):
        self.thread_names.append(threading.current_thread().name)
        return super().describe(image)


@pytest.mark.asyncio
async def test_extraction_runs_on_dedicated_workers(settings: Settings, red_jpeg: bytes) -> None:
    model = _ThreadRecordingModel()
    pipeline = build_pipeline(settings, model=model, transcoder=FakeTranscoder())

    try:
        await pipeline.resolve(red_jpeg)
    finally:
        pipeline.close()

    assert model.thread_names
    assert all(name.startswith("face-extract") for name in model.thread_names)
