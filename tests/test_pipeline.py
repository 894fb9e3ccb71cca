import asyncio
import wave
from io import BytesIO

import pytest

from trackmux.remuxer.audio_encoder import SampleBuffer
from trackmux.remuxer.engine import EngineBusyError, EngineInvocationFailure
from trackmux.remuxer.gateway import MediaEngineGateway
from trackmux.remuxer.pipeline import AudioTrack, TrackPipeline
from trackmux.remuxer.remux_plan import MapDirective, MetadataDirective, RemuxOptions
from trackmux.schemas import Track

SUBTITLE_TEXT = b"1\n00:00:01.000 --> 00:00:02.500\nHola\n\n2\n00:00:03.000 --> 00:00:04.000\nAdeu\n"


def subtitle_output(plan, files):
    return SUBTITLE_TEXT


def _tracks():
    return [
        Track(start=1, end=2.5, text="Hola", translated_text="Hola!"),
        Track(start=3, end=4, text="Adios", translated_text="Adeu"),
    ]


@pytest.mark.asyncio
async def test_extract_parses_first_subtitle_stream(pipeline, fake_engine):
    fake_engine.output_factory = subtitle_output

    tracks = await pipeline.extract(b"container", "movie.mkv")

    assert [(t.start, t.end, t.text) for t in tracks] == [(1.0, 2.5, "Hola"), (3.0, 4.0, "Adeu")]
    plan = fake_engine.plans[0]
    assert plan.maps() == [MapDirective(0, "subtitle", stream_index=0)]
    assert plan.inputs[0].name.endswith("_input_movie.mkv")
    assert fake_engine.files == {}


@pytest.mark.asyncio
async def test_extract_strips_utf8_bom(pipeline, fake_engine):
    fake_engine.output_factory = lambda plan, files: b"\xef\xbb\xbf" + SUBTITLE_TEXT

    tracks = await pipeline.extract(b"container", "movie.mkv")
    assert len(tracks) == 2


@pytest.mark.asyncio
async def test_extract_failure_returns_empty_list(pipeline, fake_engine, caplog):
    fake_engine.returncode = 1

    assert await pipeline.extract(b"no subtitles", "movie.mp4") == []
    assert "Error extracting tracks" in caplog.text


@pytest.mark.asyncio
async def test_extract_without_output_returns_empty_list(pipeline, fake_engine):
    fake_engine.output_factory = lambda plan, files: None
    assert await pipeline.extract(b"no subtitles", "movie.mp4") == []


@pytest.mark.asyncio
async def test_extract_init_failure_returns_empty_list(pipeline, fake_engine):
    fake_engine.load_failures = 1
    assert await pipeline.extract(b"x", "movie.mp4") == []


@pytest.mark.asyncio
async def test_extract_propagates_busy(fake_engine):
    pipeline = TrackPipeline(MediaEngineGateway(fake_engine, busy_policy="reject"))

    async with pipeline.gateway.session():
        with pytest.raises(EngineBusyError):
            await pipeline.extract(b"x", "movie.mp4")


@pytest.mark.asyncio
async def test_rebuild_stages_subtitles_and_audio(pipeline, fake_engine):
    samples = SampleBuffer(sample_rate=8000, channels=[[0.0, 0.5, -0.5, 1.0]])
    audio = [
        AudioTrack(payload=b"mp3 bytes", label="Catalan dub"),
        AudioTrack(payload=samples, label="Synth"),
    ]

    result = await pipeline.rebuild(b"original media", "movie.mp4", None, _tracks(), audio)

    assert result.content == b"original media"
    assert result.mime_type == "video/mp4"

    plan = fake_engine.plans[0]
    assert len(plan.inputs) == 5
    assert plan.maps("video") == [MapDirective(0, "video")]
    assert plan.maps("subtitle") == [MapDirective(1, "subtitle"), MapDirective(2, "subtitle")]
    assert plan.maps("audio") == [MapDirective(3, "audio"), MapDirective(4, "audio")]
    assert plan.metadata("audio") == [
        MetadataDirective("audio", 0, "title", "Catalan dub"),
        MetadataDirective("audio", 1, "title", "Synth"),
    ]

    original, translated = plan.inputs[1].data.decode(), plan.inputs[2].data.decode()
    assert original == "1\n00:00:01.000 --> 00:00:02.500\nHola\n\n2\n00:00:03.000 --> 00:00:04.000\nAdios"
    assert "Hola!" in translated and "Adeu" in translated

    assert plan.inputs[3].data == b"mp3 bytes"
    assert plan.inputs[3].name.endswith(".mp3")
    assert plan.inputs[4].name.endswith(".wav")
    with wave.open(BytesIO(plan.inputs[4].data)) as wav:
        assert wav.getnframes() == 4

    assert fake_engine.files == {}


@pytest.mark.asyncio
async def test_rebuild_keeps_audio_extension_hint(pipeline, fake_engine):
    await pipeline.rebuild(b"m", "movie.mp4", None, [], [AudioTrack(b"ogg", "Dub", filename_hint="ogg")])
    assert fake_engine.plans[0].inputs[3].name.endswith("audio_0.ogg")


@pytest.mark.asyncio
async def test_rebuild_with_no_tracks_or_audio(pipeline, fake_engine):
    result = await pipeline.rebuild(b"m", "movie.mp4", "video/quicktime", [])

    assert result.mime_type == "video/quicktime"
    plan = fake_engine.plans[0]
    assert plan.inputs[1].data == b""
    assert plan.maps("audio") == []


@pytest.mark.asyncio
async def test_rebuild_uses_remux_options(fake_engine):
    options = RemuxOptions(original_language="en", translated_language="fr")
    pipeline = TrackPipeline(MediaEngineGateway(fake_engine), options)

    await pipeline.rebuild(b"m", "movie.mp4", None, _tracks())

    assert [m.value for m in fake_engine.plans[0].metadata("subtitle")] == ["en", "fr"]


@pytest.mark.asyncio
async def test_rebuild_mime_type_guessed_from_name(pipeline):
    result = await pipeline.rebuild(b"m", "movie.mov", None, [])
    assert result.mime_type == "video/quicktime"


@pytest.mark.asyncio
async def test_rebuild_failure_propagates(pipeline, fake_engine):
    fake_engine.returncode = 1

    with pytest.raises(EngineInvocationFailure):
        await pipeline.rebuild(b"m", "movie.mp4", None, _tracks())
    assert fake_engine.files == {}


@pytest.mark.asyncio
async def test_rebuild_rejects_invalid_sample_buffer_before_engine(pipeline, fake_engine):
    with pytest.raises(ValueError):
        await pipeline.rebuild(b"m", "movie.mp4", None, [], [AudioTrack(SampleBuffer(8000, []), "Empty")])
    assert fake_engine.plans == []


@pytest.mark.asyncio
async def test_concurrent_rebuilds_get_their_own_output(pipeline, fake_engine):
    fake_engine.delay = 0.01

    results = await asyncio.gather(
        pipeline.rebuild(b"first", "a.mp4", None, _tracks()),
        pipeline.rebuild(b"second", "b.mp4", None, _tracks()),
    )

    assert [r.content for r in results] == [b"first", b"second"]
    assert fake_engine.max_active == 1
    assert fake_engine.plans[0].output != fake_engine.plans[1].output


@pytest.mark.asyncio
async def test_merge_maps_each_audio_payload(pipeline, fake_engine):
    result = await pipeline.merge(b"video", [b"a0", b"a1"])

    assert result.content == b"video"
    assert result.mime_type == "video/mp4"
    plan = fake_engine.plans[0]
    assert [i.data for i in plan.inputs] == [b"video", b"a0", b"a1"]
    assert plan.maps("audio") == [MapDirective(1, "audio"), MapDirective(2, "audio")]
