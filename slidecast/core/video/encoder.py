"""
Encoder Invocation - Runs ffmpeg on a built filter graph.

One build runs exactly one ffmpeg process. The process is waited on in short
intervals so that a caller can cancel the build (the process is killed) and
an optional wall-clock limit can be enforced. There are no retries here.
"""

import logging
import subprocess
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from slidecast import settings
from slidecast.core.exceptions import EncodeCancelledError, EncodeError
from slidecast.core.models import VideoParams
from slidecast.core.video.filter_graph import FilterGraph

logger = logging.getLogger(__name__)


def _format_rate(value: float) -> str:
    return f"{value:g}"


class EncoderInvocation:
    """
    Builds ffmpeg arguments and runs the encoder.

    Example:
        >>> encoder = EncoderInvocation()
        >>> args = encoder.build_args(params, graph)
        >>> encoder.run(params, graph)
        'storage/pipeline/videos/video_1700000000.mp4'
    """

    def __init__(
        self,
        ffmpeg_binary: Optional[str] = None,
        timeout: Optional[float] = None,
        poll_interval: Optional[float] = None,
        debug_command_dir: Optional[str] = None,
    ):
        """
        Args:
            ffmpeg_binary: ffmpeg executable (default from configuration)
            timeout: Wall-clock limit in seconds; 0 waits indefinitely
            poll_interval: Seconds between cancellation checks
            debug_command_dir: Directory for filter/command debug files; empty disables them
        """
        self.ffmpeg_binary = ffmpeg_binary or settings.get_ffmpeg_binary()
        self.timeout = timeout if timeout is not None else settings.get_encoder_timeout_seconds()
        self.poll_interval = poll_interval or settings.get_encoder_poll_interval_seconds()
        self.debug_command_dir = (
            debug_command_dir if debug_command_dir is not None else settings.get_debug_command_dir()
        )
        self.stderr_tail_lines = settings.get_stderr_tail_lines()

    def build_args(self, params: VideoParams, graph: FilterGraph) -> List[str]:
        """
        Build the ffmpeg argument list (without the executable).

        Inputs are every image looped, in slide order, then the audio track,
        so the audio stream index equals the slide count.
        """
        args: List[str] = []
        for slide in params.slides:
            args.extend(["-loop", "1", "-i", slide.uri])
        args.extend(["-i", params.audio.uri])

        args.extend(["-filter_complex", graph.render()])
        args.extend(["-map", f"[{graph.final_pad}]", "-map", f"{len(params.slides)}:a"])

        args.extend([
            "-c:v", settings.get_video_codec(),
            "-c:a", settings.get_audio_codec(),
            "-pix_fmt", settings.get_pix_fmt(),
        ])
        if params.bitrate:
            args.extend(["-b:v", params.bitrate])
        if params.framerate:
            args.extend(["-r", _format_rate(params.framerate)])

        args.extend(["-shortest", "-y", params.output_path])
        return args

    def run(
        self,
        params: VideoParams,
        graph: FilterGraph,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Encode the video.

        Args:
            params: Build parameters (inputs and output path)
            graph: Filter graph for the build
            cancel_event: Set by the caller to cancel the build

        Returns:
            Path of the produced video

        Raises:
            EncodeCancelledError: If cancel_event was set while encoding
            EncodeError: If ffmpeg is missing, exits non-zero, exceeds the
                timeout, or exits cleanly without writing the output
        """
        args = self.build_args(params, graph)
        filter_complex = graph.render()
        output_path = params.output_path

        logger.info(f"🎬 Encoding {len(params.slides)} slide(s) to {output_path}")
        logger.debug(f"FFmpeg command: {self.ffmpeg_binary} {' '.join(args)}")
        self.write_debug_files(args, filter_complex)

        try:
            returncode, stderr = self._execute([self.ffmpeg_binary, *args], cancel_event)
        except EncodeCancelledError:
            self._remove_partial_output(output_path)
            raise
        except EncodeError as e:
            self.write_debug_files(args, filter_complex, error=str(e), stderr=e.stderr)
            self._remove_partial_output(output_path)
            raise

        if returncode != 0:
            tail = self._tail(stderr)
            logger.error(f"❌ FFmpeg exited with code {returncode}:\n{tail}")
            self.write_debug_files(args, filter_complex, error=f"exit code {returncode}", stderr=stderr)
            self._remove_partial_output(output_path)
            raise EncodeError(
                "FFmpeg execution failed",
                returncode=returncode,
                stderr=tail,
                output_path=output_path,
            )

        if not Path(output_path).is_file():
            logger.error(f"❌ FFmpeg finished but output file is missing: {output_path}")
            self.write_debug_files(args, filter_complex, error="output file missing", stderr=stderr)
            raise EncodeError(
                "encoder did not produce output",
                returncode=returncode,
                stderr=self._tail(stderr),
                output_path=output_path,
            )

        logger.info(f"✅ FFmpeg execution successful: {output_path}")
        return output_path

    def _execute(self, cmd: List[str], cancel_event: Optional[threading.Event]) -> Tuple[int, str]:
        """Run the process to completion, polling for cancellation and timeout"""
        try:
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            logger.error("FFmpeg not found. Please install ffmpeg.")
            raise EncodeError(f"FFmpeg executable not found: {cmd[0]}") from e
        except OSError as e:
            raise EncodeError(f"Failed to start FFmpeg: {e}") from e

        started = time.monotonic()
        try:
            while True:
                if cancel_event is not None and cancel_event.is_set():
                    logger.warning("🛑 Build cancelled, killing FFmpeg")
                    self._kill(process)
                    raise EncodeCancelledError("Video build cancelled", output_path=cmd[-1])

                if self.timeout and time.monotonic() - started > self.timeout:
                    logger.error(f"FFmpeg timed out after {self.timeout:.0f}s, killing it")
                    _, stderr = self._kill(process)
                    raise EncodeError(
                        f"FFmpeg timed out after {self.timeout:.0f}s",
                        stderr=self._tail(stderr),
                        output_path=cmd[-1],
                    )

                try:
                    _, stderr = process.communicate(timeout=self.poll_interval)
                    return process.returncode, stderr or ""
                except subprocess.TimeoutExpired:
                    continue
        except BaseException:
            # Never leave an orphaned encoder behind (KeyboardInterrupt included)
            if process.poll() is None:
                self._kill(process)
            raise

    @staticmethod
    def _kill(process: subprocess.Popen) -> Tuple[str, str]:
        process.kill()
        stdout, stderr = process.communicate()
        return stdout or "", stderr or ""

    def _tail(self, stderr: str) -> str:
        lines = (stderr or "").strip().splitlines()
        return "\n".join(lines[-self.stderr_tail_lines:])

    @staticmethod
    def _remove_partial_output(output_path: str) -> None:
        path = Path(output_path)
        if path.exists():
            try:
                path.unlink()
                logger.debug(f"Cleaned up partial output: {output_path}")
            except OSError as cleanup_error:
                logger.warning(f"Failed to cleanup {output_path}: {cleanup_error}")

    def write_debug_files(
        self,
        args: List[str],
        filter_complex: str,
        error: Optional[str] = None,
        stderr: str = "",
    ) -> None:
        """
        Write the filter graph and command line to debug_command_dir.

        Failures also get an error file with the diagnostics. Does nothing
        when no directory is configured; write errors are logged, not raised.
        """
        if not self.debug_command_dir:
            return

        logs_dir = Path(self.debug_command_dir)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        command_line = f"{self.ffmpeg_binary} {' '.join(args)}"

        try:
            logs_dir.mkdir(parents=True, exist_ok=True)
            if error is None:
                (logs_dir / f"filter_{timestamp}.txt").write_text(filter_complex, encoding="utf-8")
                (logs_dir / f"command_{timestamp}.txt").write_text(
                    f"{command_line}\n\nFull filter_complex:\n{filter_complex}", encoding="utf-8"
                )
                logger.info(f"📝 FFmpeg command written to {logs_dir}")
            else:
                (logs_dir / f"error_{timestamp}.txt").write_text(
                    f"Error: {error}\n\nCommand: {command_line}\n\nFilter Complex:\n{filter_complex}"
                    f"\n\nStderr:\n{stderr}",
                    encoding="utf-8",
                )
                logger.info(f"📝 FFmpeg error written to {logs_dir}")
        except OSError as e:
            logger.error(f"Failed to write FFmpeg debug files to {logs_dir}: {e}")
