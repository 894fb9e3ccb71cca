"""
Track extraction and remux package.

Converts between media containers and editable track lists, and plans and
runs the engine invocations that rebuild containers:

- timecode: HH:MM:SS.mmm <-> seconds
- subtitle_codec: subtitle text <-> Track list
- remux_plan: deterministic input/directive plans for the engine
- engine: MediaEngine protocol and the ffmpeg-backed implementation
- gateway: single-flight sessions over one engine
- audio_encoder: PyAV-based WAV encoding of decoded sample buffers
- pipeline: extract / rebuild / merge orchestration
"""
