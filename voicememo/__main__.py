"""CLI entry point: ``python -m voicememo {record,serve,devices}``."""

import argparse
import asyncio
import json
import logging
import sys
import threading

from voicememo.core.config import FallbackMode, Settings, get_settings
from voicememo.core.exceptions import (
    DeviceUnavailableError,
    PlaybackFailedError,
    RecordingStateError,
    SubmissionCancelledError,
)
from voicememo.core.log_setup import setup_logging
from voicememo.core.models import (
    CaptureConstraints,
    MemoryRecord,
    ProgressStage,
    SessionState,
    SubmissionSuccess,
)
from voicememo.core.utils import format_time
from voicememo.services.audio.capture import SoundDeviceCapture, load_sounddevice
from voicememo.services.enhancement import create_enhancer
from voicememo.services.pipeline import SubmissionPipeline
from voicememo.services.recorder import VoiceRecorder
from voicememo.services.session import RecordingSession
from voicememo.services.storage import create_object_store
from voicememo.services.transcription import create_stt

logger = logging.getLogger(__name__)

PROGRESS_MESSAGES = {
    ProgressStage.uploading: "Saving your recording...",
    ProgressStage.transcribing: "Converting your voice recording to text...",
    ProgressStage.enhancing: "Improving transcription quality and generating a title...",
    ProgressStage.awaiting_manual_text: "Waiting for your text...",
    ProgressStage.delivering: "Saving your memory...",
}

RECORDING_HELP = "[p]ause  [r]esume  [s]top  [d]iscard"
PREVIEW_HELP = "[l]isten/pause  [u]pload & transcribe  [d]iscard"


async def read_line(prompt: str) -> str:
    """``input()`` on a daemon thread owned by the caller.

    Cancelling the await abandons the read. The thread may stay blocked on
    stdin, but as a daemon it does not keep the process alive.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[str] = loop.create_future()

    def settle(line: str | None, error: Exception | None) -> None:
        if future.done():
            return
        if error is not None:
            future.set_exception(error)
        else:
            future.set_result(line)

    def reader() -> None:
        try:
            line, error = input(prompt), None
        except Exception as exc:
            line, error = None, exc
        try:
            loop.call_soon_threadsafe(settle, line, error)
        except RuntimeError:
            logger.debug("Console read finished after the event loop closed")

    threading.Thread(target=reader, name="voicememo-stdin", daemon=True).start()
    return await future


class ConsoleSink:
    """Prints the finished memory as JSON."""

    def __init__(self, stream=None) -> None:
        self._stream = stream or sys.stdout

    def deliver(self, record: MemoryRecord) -> None:
        print(json.dumps(record.model_dump(), indent=2, ensure_ascii=False), file=self._stream)


class ConsoleManualChannel:
    """Asks for the transcript on the terminal; EOF/Ctrl-D cancels."""

    async def request_manual_text(self, prompt: str, default: str) -> str | None:
        try:
            answer = await read_line(f"{prompt}\n[{default}] > ")
        except EOFError as exc:
            raise SubmissionCancelledError("Manual entry dismissed") from exc
        return answer.strip() or default


def build_recorder(settings: Settings, fallback_mode: FallbackMode | None = None) -> VoiceRecorder:
    """Wire capture, session, providers and pipeline from settings."""
    constraints = CaptureConstraints(
        channels=settings.channels,
        sample_rate=settings.sample_rate,
        device=settings.input_device or None,
    )
    session = RecordingSession(
        SoundDeviceCapture(codec_preference=settings.codec_preference),
        constraints=constraints,
        interval_ms=settings.chunk_interval_ms,
        on_tick=lambda seconds: print(f"\r● {format_time(seconds)}", end="", flush=True),
    )
    if settings.enhancer_provider == "llm":
        enhancer = create_enhancer("llm", llm_provider=settings.llm_provider)
    else:
        enhancer = create_enhancer(settings.enhancer_provider)
    pipeline = SubmissionPipeline(
        object_store=create_object_store(settings.storage_provider),
        stt=create_stt(settings.stt_provider),
        enhancer=enhancer,
        sink=ConsoleSink(),
        manual_channel=ConsoleManualChannel(),
        settings=settings,
        fallback_mode=fallback_mode,
        on_progress=lambda stage: print(PROGRESS_MESSAGES[stage]),
    )
    return VoiceRecorder(session, pipeline)


async def _prompt(text: str) -> str:
    try:
        return (await read_line(text)).strip().lower()
    except EOFError:
        return "d"


async def run_recording(recorder: VoiceRecorder) -> int:
    """Drive one capture session interactively; returns a process exit code."""
    try:
        recorder.start()
    except DeviceUnavailableError as exc:
        print(f"Could not access microphone: {exc.detail}", file=sys.stderr)
        return 1

    print(f"Recording. {RECORDING_HELP}")
    try:
        while recorder.state in (SessionState.recording, SessionState.paused):
            command = await _prompt("\n> ")
            try:
                if command == "p":
                    recorder.pause()
                    print(f"Paused at {format_time(recorder.elapsed_seconds)}")
                elif command == "r":
                    recorder.resume()
                elif command == "s":
                    buffer = recorder.stop()
                    length = format_time(buffer.duration_seconds)
                    print(f"Recorded {length} ({buffer.content_type})")
                elif command == "d":
                    recorder.discard()
                    print("Recording discarded")
                    return 0
            except RecordingStateError as exc:
                print(exc.detail)

        print(PREVIEW_HELP)
        while recorder.state == SessionState.preview:
            command = await _prompt("> ")
            if command == "l":
                try:
                    recorder.toggle_playback()
                except PlaybackFailedError as exc:
                    print(f"Could not play recording: {exc.detail}")
            elif command == "d":
                recorder.discard()
                print("Recording discarded")
                return 0
            elif command == "u":
                outcome = await recorder.submit()
                if isinstance(outcome, SubmissionSuccess):
                    sources = f"{outcome.audio_source} audio, {outcome.text_source} text"
                    print(f"Memory saved ({sources})")
                    return 0
                print(f"Failed to process your recording ({outcome.stage}): {outcome.error}")
                return 1
    except (KeyboardInterrupt, asyncio.CancelledError):
        recorder.discard()
        raise
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="voicememo")
    sub = parser.add_subparsers(dest="command")

    record_cmd = sub.add_parser("record", help="Record, review and submit one memory.")
    record_cmd.add_argument("--device", help="Preferred input device name substring.")
    record_cmd.add_argument(
        "--offline",
        action="store_true",
        help="Use a stub transcript instead of asking when transcription fails.",
    )

    serve_cmd = sub.add_parser("serve", help="Run the HTTP service.")
    serve_cmd.add_argument("--host", help="Bind address.")
    serve_cmd.add_argument("--port", type=int, help="Port.")
    serve_cmd.add_argument("--reload", action="store_true", help="Auto-reload on changes.")

    sub.add_parser("devices", help="List audio input devices.")

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)

    if args.command == "record":
        if args.device:
            settings = settings.model_copy(update={"input_device": args.device})
        mode = FallbackMode.offline_stub if args.offline else None
        recorder = build_recorder(settings, fallback_mode=mode)
        try:
            return asyncio.run(run_recording(recorder))
        except KeyboardInterrupt:
            print("\nRecording discarded")
            return 130
        finally:
            recorder.close()

    if args.command == "serve":
        import uvicorn

        uvicorn.run(
            "voicememo.api.app:app",
            host=args.host or settings.app_host,
            port=args.port or settings.app_port,
            reload=args.reload,
        )
        return 0

    if args.command == "devices":
        try:
            sd = load_sounddevice()
        except DeviceUnavailableError as exc:
            print(exc.detail, file=sys.stderr)
            return 1
        for device in sd.query_devices():
            if device.get("max_input_channels", 0) > 0:
                inputs = device["max_input_channels"]
                print(f"[{device.get('index')}] {device.get('name')} (inputs: {inputs})")
        return 0

    parser.print_help()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
