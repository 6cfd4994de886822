import os
import re
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence

from reelsynth.config import get_settings


@dataclass
class FFmpegError(Exception):
    """
    Typed ffmpeg failure.
    - message: sanitized/shortened text safe to return to clients
    - stderr: full stderr for server logs/debugging
    - cmd: the command executed
    """
    message: str
    stderr: str = ""
    stdout: str = ""
    returncode: Optional[int] = None
    cmd: Optional[list[str]] = None

    def __str__(self) -> str:
        return self.message


_NOISE_PATTERNS = [
    r"^ffmpeg version\b",
    r"^ffprobe version\b",
    r"^built with\b",
    r"^configuration:",
    r"^(libav(util|codec|format|device|filter)|libswscale|libswresample|libpostproc)\b",
    r"^Input #\d+",
    r"^Output #\d+",
    r"^Stream mapping:",
    r"^Press \[q\] to stop",
]


def sanitize_ffmpeg_stderr(stderr: str, max_lines: int = 25, max_chars: int = 4000) -> str:
    """
    Keep the error understandable but short:
    - take the last N lines (ffmpeg prints the real reason near the end)
    - drop banner/config noise
    - trim overly long lines and total size
    """
    if not stderr:
        return "FFmpeg failed (no stderr)"

    s = stderr.replace("\r\n", "\n").replace("\r", "\n")
    lines = [ln.strip() for ln in s.split("\n") if ln.strip()]
    tail = lines[-max_lines:]

    cleaned: list[str] = []
    for ln in tail:
        if any(re.match(p, ln, re.IGNORECASE) for p in _NOISE_PATTERNS):
            continue
        if len(ln) > 500:
            ln = ln[:500] + "…"
        cleaned.append(ln)

    out = "\n".join(cleaned).strip() or "FFmpeg failed (no useful stderr)"
    if len(out) > max_chars:
        out = out[-max_chars:]
    return out


def escape_filter_path(path: str) -> str:
    r"""
    Escape a filesystem path for use as an unquoted filter option value.

    Two levels apply: the option parser (`\`, `:` and `'`), then the
    filtergraph parser (`\`, `'`, `[`, `]`, `,` and `;`).

    escape_filter_path("C:/subs/it's.srt") == r"C\\:/subs/it\\\'s.srt"
    """
    value = re.sub(r"([\\:'])", r"\\\1", path)
    return re.sub(r"([\\'\[\],;])", r"\\\1", value)


def _prepare_command(cmd: Sequence[str]) -> list[str]:
    """
    Normalize an ffmpeg command:
    - prepend the ffmpeg binary when only arguments were given
    - add -nostdin so ffmpeg never blocks on a detached stdin
    - add -threads from settings when configured
    """
    cmd_list = [str(c) for c in cmd]
    if not cmd_list:
        raise ValueError("Empty ffmpeg command")

    if os.path.basename(cmd_list[0]).lower() not in {"ffmpeg", "ffmpeg.exe"}:
        cmd_list.insert(0, "ffmpeg")

    if "-nostdin" not in cmd_list:
        cmd_list.insert(1, "-nostdin")

    threads = get_settings().ffmpeg.threads
    if threads > 0 and "-threads" not in cmd_list:
        idx = cmd_list.index("-nostdin") + 1
        cmd_list[idx:idx] = ["-threads", str(threads)]
    return cmd_list


def run_ffmpeg_capture(
    cmd: Sequence[str],
    *,
    check: bool = True,
    timeout: Optional[float] = None,
) -> subprocess.CompletedProcess:
    """
    Run ffmpeg and capture its output.

    Paths in `cmd` must be absolute; the process working directory is never changed.
    Raises FFmpegError with sanitized stderr on timeout or (when check) non-zero exit.
    """
    cmd_list = _prepare_command(cmd)

    try:
        proc = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        stderr = e.stderr or ""
        if isinstance(stderr, bytes):
            stderr = stderr.decode("utf-8", errors="replace")
        raise FFmpegError(
            message=f"FFmpeg timed out after {timeout}s",
            stderr=stderr,
            cmd=cmd_list,
        )
    except FileNotFoundError:
        raise FFmpegError(message="FFmpeg executable not found on PATH", cmd=cmd_list)

    if check and proc.returncode != 0:
        rc = proc.returncode
        stderr = proc.stderr or ""
        if stderr:
            msg = f"FFmpeg failed (exit {rc}):\n{sanitize_ffmpeg_stderr(stderr)}"
        elif rc in (137, -9):
            # SIGKILL with no output is almost always the OOM killer.
            msg = f"FFmpeg failed (exit {rc}). Likely out of memory; try FFMPEG_THREADS=1."
        else:
            msg = f"FFmpeg failed (exit {rc}). No stderr captured."
        raise FFmpegError(
            message=msg,
            stderr=stderr,
            stdout=proc.stdout or "",
            returncode=rc,
            cmd=cmd_list,
        )

    return proc


def media_duration(path: str, *, timeout: Optional[float] = None) -> float:
    """Return media duration in seconds using ffprobe."""
    cmd_list = [
        "ffprobe",
        "-v",
        "error",
        "-show_entries",
        "format=duration",
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        path,
    ]
    try:
        proc = subprocess.run(
            cmd_list,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired:
        raise FFmpegError(message=f"FFprobe timed out after {timeout}s", cmd=cmd_list)
    except FileNotFoundError:
        raise FFmpegError(message="FFprobe executable not found on PATH", cmd=cmd_list)

    if proc.returncode != 0:
        raise FFmpegError(
            message=f"FFprobe failed:\n{sanitize_ffmpeg_stderr(proc.stderr or '')}",
            stderr=proc.stderr or "",
            returncode=proc.returncode,
            cmd=cmd_list,
        )

    try:
        return float((proc.stdout or "").strip())
    except ValueError:
        raise FFmpegError(message=f"FFprobe returned no duration for {path}", cmd=cmd_list)
