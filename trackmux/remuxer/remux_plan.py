"""
Deterministic remux planning.

A ``RemuxPlan`` is the complete description of one engine invocation: the
ordered inputs (an input's position is the index the directives refer to),
the ordered stream directives and the output artifact name. Plans are pure
values; building one has no side effects.

Rebuild input layout::

    0          primary media (video copied verbatim)
    1          original-language subtitles
    2          translated subtitles
    3 .. 3+N-1 dub audio tracks, in caller order

Changing this layout means changing the directive indices with it.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, Union

from trackmux.const import (
    DEFAULT_AUDIO_CODEC,
    DEFAULT_ORIGINAL_SUBTITLE_LANGUAGE,
    DEFAULT_SUBTITLE_CODEC,
    DEFAULT_TRANSLATED_SUBTITLE_LANGUAGE,
    FIRST_AUDIO_INPUT_INDEX,
    MEDIA_INPUT_INDEX,
    ORIGINAL_SUBTITLE_INPUT_INDEX,
    TRANSLATED_SUBTITLE_INPUT_INDEX,
    VIDEO_COPY_CODEC,
)

InputKind = Literal["media", "subtitle", "audio"]
MediaType = Literal["video", "audio", "subtitle"]

# ffmpeg stream specifier letter per media type
_STREAM_LETTER: dict[str, str] = {"video": "v", "audio": "a", "subtitle": "s"}


@dataclass(frozen=True, slots=True)
class PlanInput:
    """A named input file and the bytes to stage under that name."""

    name: str
    kind: InputKind
    data: bytes = field(repr=False, compare=False)
    label: str = ""


@dataclass(frozen=True, slots=True)
class MapDirective:
    """Route streams of one input into the output (``-map``)."""

    input_index: int
    media_type: MediaType
    stream_index: int | None = None

    def to_args(self) -> list[str]:
        specifier = f"{self.input_index}:{_STREAM_LETTER[self.media_type]}"
        if self.stream_index is not None:
            specifier = f"{specifier}:{self.stream_index}"
        return ["-map", specifier]


@dataclass(frozen=True, slots=True)
class CodecDirective:
    """Select the codec of output streams (``-c:v``, ``-c:a:1``, ...)."""

    media_type: MediaType
    codec: str
    output_index: int | None = None

    def to_args(self) -> list[str]:
        option = f"-c:{_STREAM_LETTER[self.media_type]}"
        if self.output_index is not None:
            option = f"{option}:{self.output_index}"
        return [option, self.codec]


@dataclass(frozen=True, slots=True)
class MetadataDirective:
    """Attach a ``key=value`` tag to one output stream (``-metadata:s:a:0``)."""

    media_type: MediaType
    output_index: int
    key: str
    value: str

    def to_args(self) -> list[str]:
        return [f"-metadata:s:{_STREAM_LETTER[self.media_type]}:{self.output_index}", f"{self.key}={self.value}"]


Directive = Union[MapDirective, CodecDirective, MetadataDirective]


@dataclass(frozen=True, slots=True)
class RemuxOptions:
    audio_codec: str = DEFAULT_AUDIO_CODEC
    subtitle_codec: str = DEFAULT_SUBTITLE_CODEC
    original_language: str = DEFAULT_ORIGINAL_SUBTITLE_LANGUAGE
    translated_language: str = DEFAULT_TRANSLATED_SUBTITLE_LANGUAGE

    @classmethod
    def from_settings(cls, settings) -> "RemuxOptions":
        return cls(
            audio_codec=settings.audio_codec,
            subtitle_codec=settings.subtitle_codec,
            original_language=settings.original_subtitle_language,
            translated_language=settings.translated_subtitle_language,
        )


@dataclass(frozen=True, slots=True)
class RemuxPlan:
    inputs: tuple[PlanInput, ...]
    directives: tuple[Directive, ...]
    output: str

    def maps(self, media_type: MediaType | None = None) -> list[MapDirective]:
        """Return the map directives, optionally only those of one media type."""
        return [
            d
            for d in self.directives
            if isinstance(d, MapDirective) and (media_type is None or d.media_type == media_type)
        ]

    def metadata(self, media_type: MediaType | None = None) -> list[MetadataDirective]:
        return [
            d
            for d in self.directives
            if isinstance(d, MetadataDirective) and (media_type is None or d.media_type == media_type)
        ]

    def to_ffmpeg_args(self) -> list[str]:
        """Render the plan as ffmpeg command line arguments (without the binary)."""
        args: list[str] = []
        for plan_input in self.inputs:
            args.extend(["-i", plan_input.name])
        for directive in self.directives:
            args.extend(directive.to_args())
        args.append(self.output)
        return args


def plan_remux(
    media: PlanInput,
    original_subtitles: PlanInput,
    translated_subtitles: PlanInput,
    audio: Sequence[PlanInput],
    output: str,
    options: RemuxOptions | None = None,
) -> RemuxPlan:
    """
    Plan a rebuild: copy the video of ``media``, add one encoded stream per
    dub audio input titled with its label, and both subtitle streams with
    their language tags.
    """
    options = options or RemuxOptions()
    inputs = (media, original_subtitles, translated_subtitles, *audio)

    directives: list[Directive] = [
        MapDirective(MEDIA_INPUT_INDEX, "video"),
        CodecDirective("video", VIDEO_COPY_CODEC),
    ]

    for output_index, audio_input in enumerate(audio):
        directives.extend(
            [
                MapDirective(FIRST_AUDIO_INPUT_INDEX + output_index, "audio"),
                CodecDirective("audio", options.audio_codec, output_index),
                MetadataDirective("audio", output_index, "title", audio_input.label),
            ]
        )

    directives.extend(
        [
            MapDirective(ORIGINAL_SUBTITLE_INPUT_INDEX, "subtitle"),
            MapDirective(TRANSLATED_SUBTITLE_INPUT_INDEX, "subtitle"),
            CodecDirective("subtitle", options.subtitle_codec),
            MetadataDirective("subtitle", 0, "language", options.original_language),
            MetadataDirective("subtitle", 1, "language", options.translated_language),
        ]
    )

    return RemuxPlan(inputs=inputs, directives=tuple(directives), output=output)


def plan_subtitle_extraction(media: PlanInput, output: str) -> RemuxPlan:
    """Plan isolating the first subtitle stream of ``media`` into a text artifact."""
    return RemuxPlan(
        inputs=(media,),
        directives=(MapDirective(MEDIA_INPUT_INDEX, "subtitle", stream_index=0),),
        output=output,
    )


def plan_audio_merge(
    video: PlanInput,
    audio: Sequence[PlanInput],
    output: str,
    options: RemuxOptions | None = None,
) -> RemuxPlan:
    """Plan muxing the video of ``video`` with every input of ``audio`` (inputs 1..N)."""
    options = options or RemuxOptions()
    directives: list[Directive] = [
        CodecDirective("video", VIDEO_COPY_CODEC),
        CodecDirective("audio", options.audio_codec),
        MapDirective(MEDIA_INPUT_INDEX, "video"),
    ]
    directives.extend(MapDirective(index, "audio") for index in range(1, len(audio) + 1))
    return RemuxPlan(inputs=(video, *audio), directives=tuple(directives), output=output)
