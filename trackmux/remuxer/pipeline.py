"""
Track extraction and media rebuild pipelines.

``extract``: media bytes -> first subtitle stream -> Track list
``rebuild``: media bytes + Track list + dub audio -> container with the
original video, N titled dub audio streams and the original/translated
subtitle streams
``merge``:   video bytes + audio files -> container with the video and every
audio file as its own stream

Each call is one engine session (stage -> invoke -> retrieve), serialized by
the gateway.
"""

import asyncio
import logging
import mimetypes
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Union

from trackmux.const import (
    DEFAULT_OUTPUT_MIME_TYPE,
    ENCODED_AUDIO_EXTENSION,
    OUTPUT_EXTENSION,
    SUBTITLE_EXTENSION,
)
from trackmux.remuxer.audio_encoder import SampleBuffer, WavEncoder
from trackmux.remuxer.engine import EngineBusyError, EngineError
from trackmux.remuxer.gateway import EngineSession, MediaEngineGateway
from trackmux.remuxer.remux_plan import (
    PlanInput,
    RemuxOptions,
    RemuxPlan,
    plan_audio_merge,
    plan_remux,
    plan_subtitle_extraction,
)
from trackmux.remuxer.subtitle_codec import SubtitleChannel, generate_subtitles, parse_subtitles
from trackmux.schemas import Track

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class AudioTrack:
    """
    One dub audio stream for a rebuild.

    ``payload`` is either encoded audio bytes, staged unchanged, or a decoded
    ``SampleBuffer``, encoded to WAV first. ``label`` becomes the stream title.
    """

    payload: Union[bytes, SampleBuffer]
    label: str
    filename_hint: str | None = None


@dataclass(slots=True)
class RebuildResult:
    content: bytes
    mime_type: str


@dataclass(slots=True)
class EncodedAudio:
    data: bytes
    label: str
    extension: str


def _normalize_extension(extension: str) -> str:
    return extension if extension.startswith(".") else f".{extension}"


def _resolve_mime_type(mime_type: str | None, media_name: str) -> str:
    if mime_type:
        return mime_type
    guessed, _ = mimetypes.guess_type(media_name)
    return guessed or DEFAULT_OUTPUT_MIME_TYPE


class TrackPipeline:
    """Composes subtitle conversion, remux planning and the engine gateway."""

    def __init__(
        self,
        gateway: MediaEngineGateway,
        options: RemuxOptions | None = None,
        audio_encoder: WavEncoder | None = None,
    ) -> None:
        self._gateway = gateway
        self._options = options or RemuxOptions()
        self._audio_encoder = audio_encoder or WavEncoder()

    @property
    def gateway(self) -> MediaEngineGateway:
        return self._gateway

    async def extract(self, media: bytes, media_name: str) -> list[Track]:
        """
        Extract the first subtitle stream of ``media`` as tracks.

        Engine failures, including a container without subtitles, are logged
        and produce an empty list so the editor can start from scratch.
        """
        try:
            async with self._gateway.session() as session:
                plan = plan_subtitle_extraction(
                    PlanInput(session.name_for(media_name, role="input"), "media", media),
                    output=session.name_for(f"subtitles{SUBTITLE_EXTENSION}"),
                )
                await session.stage_inputs(plan)
                await session.invoke(plan)
                content = await session.retrieve(plan.output)
        except EngineBusyError:
            raise
        except EngineError as e:
            logger.error("[pipeline] Error extracting tracks from %s: %s", media_name, e)
            return []

        tracks = parse_subtitles(content.decode("utf-8-sig", errors="replace"))
        logger.info("[pipeline] Extracted %d tracks from %s", len(tracks), media_name)
        return tracks

    async def _encode_audio(self, audio_track: AudioTrack) -> EncodedAudio:
        if isinstance(audio_track.payload, SampleBuffer):
            loop = asyncio.get_running_loop()
            data = await loop.run_in_executor(None, self._audio_encoder.encode, audio_track.payload)
            extension = self._audio_encoder.extension
        else:
            data = bytes(audio_track.payload)
            extension = _normalize_extension(audio_track.filename_hint or ENCODED_AUDIO_EXTENSION)
        return EncodedAudio(data=data, label=audio_track.label, extension=extension)

    def build_rebuild_plan(
        self,
        session: EngineSession,
        media: bytes,
        media_name: str,
        tracks: Sequence[Track],
        audio: Sequence[EncodedAudio],
    ) -> RemuxPlan:
        """Return the plan ``rebuild`` invokes, with inputs named for ``session``."""
        original = generate_subtitles(tracks, SubtitleChannel.ORIGINAL)
        translated = generate_subtitles(tracks, SubtitleChannel.TRANSLATED)
        return plan_remux(
            media=PlanInput(session.name_for(media_name, role="input"), "media", media),
            original_subtitles=PlanInput(
                session.name_for(f"original_subtitles{SUBTITLE_EXTENSION}"), "subtitle", original.encode("utf-8")
            ),
            translated_subtitles=PlanInput(
                session.name_for(f"translated_subtitles{SUBTITLE_EXTENSION}"), "subtitle", translated.encode("utf-8")
            ),
            audio=[
                PlanInput(session.name_for(f"audio_{i}{item.extension}"), "audio", item.data, label=item.label)
                for i, item in enumerate(audio)
            ],
            output=session.name_for(f"output{OUTPUT_EXTENSION}"),
            options=self._options,
        )

    async def rebuild(
        self,
        media: bytes,
        media_name: str,
        mime_type: str | None,
        tracks: Sequence[Track],
        audio_tracks: Sequence[AudioTrack] = (),
    ) -> RebuildResult:
        """
        Rebuild ``media`` with both subtitle channels of ``tracks`` and one
        stream per dub audio track. Engine failures propagate; there is no
        partial output.
        """
        # Encoding decoded buffers needs no engine, so it happens before taking the session
        encoded_audio = [await self._encode_audio(audio_track) for audio_track in audio_tracks]

        async with self._gateway.session() as session:
            plan = self.build_rebuild_plan(session, media, media_name, tracks, encoded_audio)
            await session.stage_inputs(plan)
            await session.invoke(plan)
            content = await session.retrieve(plan.output)

        logger.info(
            "[pipeline] Rebuilt %s with %d tracks and %d audio streams (%d bytes)",
            media_name,
            len(tracks),
            len(encoded_audio),
            len(content),
        )
        return RebuildResult(content=content, mime_type=_resolve_mime_type(mime_type, media_name))

    async def merge(
        self,
        video: bytes,
        audio_payloads: Sequence[bytes],
        video_name: str = f"video{OUTPUT_EXTENSION}",
    ) -> RebuildResult:
        """Mux ``video`` with each encoded audio payload as an extra audio stream."""
        async with self._gateway.session() as session:
            plan = plan_audio_merge(
                PlanInput(session.name_for(video_name, role="input"), "media", video),
                [
                    PlanInput(session.name_for(f"audio{i}{ENCODED_AUDIO_EXTENSION}"), "audio", payload)
                    for i, payload in enumerate(audio_payloads)
                ],
                output=session.name_for(f"output{OUTPUT_EXTENSION}"),
                options=self._options,
            )
            await session.stage_inputs(plan)
            await session.invoke(plan)
            content = await session.retrieve(plan.output)

        logger.info("[pipeline] Merged %s with %d audio files", video_name, len(audio_payloads))
        return RebuildResult(content=content, mime_type=DEFAULT_OUTPUT_MIME_TYPE)
