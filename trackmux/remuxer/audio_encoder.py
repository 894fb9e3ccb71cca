"""
PyAV-based encoder turning decoded sample buffers into WAV bytes.

Dub audio may arrive already encoded (MP3, WAV, ...) or as decoded planar
float samples. The engine only consumes files, so decoded buffers are
encoded to 16-bit PCM WAV in memory before staging.

Architecture:
  planar float channels -> fltp AudioFrame -> AudioResampler (s16) -> pcm_s16le -> WAV container
"""

import io
import logging
from array import array
from collections.abc import Sequence
from dataclasses import dataclass
from fractions import Fraction

import av
from av.audio.resampler import AudioResampler

from trackmux.const import SAMPLE_BUFFER_AUDIO_EXTENSION

logger = logging.getLogger(__name__)

_OUTPUT_CODEC = "pcm_s16le"
_INPUT_SAMPLE_FORMAT = "fltp"  # one float plane per channel
_OUTPUT_SAMPLE_FORMAT = "s16"  # packed, single plane

# Map channel count -> FFmpeg layout name
_CHANNEL_LAYOUT_MAP = {
    1: "mono",
    2: "stereo",
    3: "2.1",
    4: "quad",
    6: "5.1",
    8: "7.1",
}


@dataclass(slots=True)
class SampleBuffer:
    """Decoded audio: one sequence of float samples in [-1.0, 1.0] per channel."""

    sample_rate: int
    channels: Sequence[Sequence[float]]

    @property
    def number_of_channels(self) -> int:
        return len(self.channels)

    @property
    def length(self) -> int:
        """Samples per channel."""
        return len(self.channels[0]) if self.channels else 0

    @property
    def duration(self) -> float:
        return self.length / self.sample_rate if self.sample_rate else 0.0


def _planar_frame(buffer: SampleBuffer, layout: str) -> av.AudioFrame:
    # align=1 keeps each plane exactly length * 4 bytes
    frame = av.AudioFrame(format=_INPUT_SAMPLE_FORMAT, layout=layout, samples=buffer.length, align=1)
    for plane, channel in zip(frame.planes, buffer.channels):
        plane.update(array("f", channel).tobytes())
    frame.sample_rate = buffer.sample_rate
    frame.time_base = Fraction(1, buffer.sample_rate)
    frame.pts = 0
    return frame


class WavEncoder:
    """Encodes a ``SampleBuffer`` as an in-memory 16-bit PCM WAV file."""

    extension = SAMPLE_BUFFER_AUDIO_EXTENSION

    def encode(self, buffer: SampleBuffer) -> bytes:
        channel_count = buffer.number_of_channels
        if channel_count == 0:
            raise ValueError("Sample buffer has no channels")
        if buffer.sample_rate <= 0:
            raise ValueError(f"Invalid sample rate: {buffer.sample_rate}")
        layout = _CHANNEL_LAYOUT_MAP.get(channel_count)
        if layout is None:
            raise ValueError(f"Unsupported channel count: {channel_count}")
        length = buffer.length
        if length == 0:
            raise ValueError("Sample buffer is empty")
        if any(len(channel) != length for channel in buffer.channels):
            raise ValueError("Sample buffer channels differ in length")

        # Interleaving and s16 quantization (with clipping) happen in swresample
        resampler = AudioResampler(format=_OUTPUT_SAMPLE_FORMAT, layout=layout, rate=buffer.sample_rate)

        output = io.BytesIO()
        with av.open(output, mode="w", format="wav") as container:
            stream = container.add_stream(_OUTPUT_CODEC, rate=buffer.sample_rate)
            stream.codec_context.layout = layout
            stream.codec_context.format = _OUTPUT_SAMPLE_FORMAT

            for frame in (_planar_frame(buffer, layout), None):
                resampled = resampler.resample(frame)
                if resampled is None:
                    continue
                # resampled can be a single frame or list of frames
                if not isinstance(resampled, list):
                    resampled = [resampled]
                for rs_frame in resampled:
                    for packet in stream.encode(rs_frame):
                        container.mux(packet)

            for packet in stream.encode(None):
                container.mux(packet)

        data = output.getvalue()
        logger.info(
            "[audio_encoder] Encoded %d samples x %dch @%dHz -> %d bytes WAV",
            length,
            channel_count,
            buffer.sample_rate,
            len(data),
        )
        return data
