# Stream codecs for a rebuilt container. mov_text is the only text subtitle
# codec the MP4 muxer accepts.
VIDEO_COPY_CODEC = "copy"
DEFAULT_AUDIO_CODEC = "aac"
DEFAULT_SUBTITLE_CODEC = "mov_text"

# Language tags written on the two subtitle streams.
DEFAULT_ORIGINAL_SUBTITLE_LANGUAGE = "es"
DEFAULT_TRANSLATED_SUBTITLE_LANGUAGE = "ca"

# Fixed input positions of a rebuild invocation. Audio inputs follow the
# translated subtitles in caller order.
MEDIA_INPUT_INDEX = 0
ORIGINAL_SUBTITLE_INPUT_INDEX = 1
TRANSLATED_SUBTITLE_INPUT_INDEX = 2
FIRST_AUDIO_INPUT_INDEX = 3

OUTPUT_EXTENSION = ".mp4"
SUBTITLE_EXTENSION = ".srt"
ENCODED_AUDIO_EXTENSION = ".mp3"
SAMPLE_BUFFER_AUDIO_EXTENSION = ".wav"

DEFAULT_OUTPUT_MIME_TYPE = "video/mp4"

# Arguments prepended to every ffmpeg invocation.
FFMPEG_BASE_ARGS = ["-hide_banner", "-nostdin", "-y", "-loglevel", "error"]
