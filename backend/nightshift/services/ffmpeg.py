"""
ffmpeg-backed media operations

every operation is a blocking subprocess call wrapped in asyncio.to_thread.
failures surface as MediaOperationError; the scheduler decides what that
means for the record's status.
"""
import asyncio
import json
import os
import re
import subprocess
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from nightshift.core.config import settings
from nightshift.core.errors import MediaOperationError, SourceMissingError
from nightshift.core.logging_config import get_logger
from nightshift.models import FileRecord

logger = get_logger(__name__)

# subtitle codec -> (sidecar extension, codec argument)
SUBTITLE_OUTPUTS = {
    "subrip": ("srt", "copy"),
    "srt": ("srt", "copy"),
    "mov_text": ("srt", "srt"),
    "ass": ("ass", "copy"),
    "ssa": ("ass", "copy"),
    "webvtt": ("vtt", "copy"),
    "hdmv_pgs_subtitle": ("sup", "copy"),
    "dvd_subtitle": ("mks", "copy"),
}
DEFAULT_SUBTITLE_OUTPUT = ("mks", "copy")

SSIM_PATTERN = re.compile(r'SSIM .*All:([0-9.]+)')
PSNR_PATTERN = re.compile(r'PSNR .*average:([0-9.]+|inf)')


@dataclass
class OperationResult:
    output_path: Optional[str] = None
    ssim_score: Optional[float] = None
    psnr_score: Optional[float] = None


class MediaOperations(Protocol):
    async def extract_subtitles(self, source_path: str, record: FileRecord) -> OperationResult:
        ...

    async def transcode(self, source_path: str, record: FileRecord) -> OperationResult:
        ...


@dataclass
class VideoProfile:
    codec: str = settings.VIDEO_CODEC
    preset: str = settings.VIDEO_PRESET
    tune: str = settings.VIDEO_TUNE
    rc: str = settings.VIDEO_RC
    qp: int = settings.VIDEO_QP


def output_stem(record: FileRecord) -> str:
    name = record.cleaned_name or record.original_name
    return os.path.splitext(name)[0]


def _run(cmd: List[str]) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(cmd, capture_output=True, text=True, check=True)
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        raise MediaOperationError(
            f"{os.path.basename(cmd[0])} exited with {e.returncode}: {stderr[-500:]}"
        ) from e
    except FileNotFoundError as e:
        raise MediaOperationError(f"executable not found: {cmd[0]}") from e


def probe_streams(file_path: str, ffprobe_bin: str = None) -> List[dict]:
    """
    list the streams of a media file using ffprobe
    each entry carries index, codec_type, codec_name and tags
    """
    cmd = [
        ffprobe_bin or settings.FFPROBE_BIN,
        "-v", "quiet",
        "-print_format", "json",
        "-show_streams",
        file_path
    ]
    result = _run(cmd)
    try:
        data = json.loads(result.stdout or "{}")
    except ValueError as e:
        raise MediaOperationError(f"unreadable ffprobe output for {file_path}") from e
    return data.get("streams", [])


def first_subtitle_stream(streams: List[dict]) -> Optional[dict]:
    return next((s for s in streams if s.get("codec_type") == "subtitle"), None)


def build_subtitle_command(ffmpeg_bin: str, source_path: str, stream: dict, output_path: str) -> List[str]:
    codec_name = (stream.get("codec_name") or "").lower()
    _, codec_arg = SUBTITLE_OUTPUTS.get(codec_name, DEFAULT_SUBTITLE_OUTPUT)
    return [
        ffmpeg_bin,
        "-y",
        "-loglevel", "error",
        "-i", source_path,
        "-map", f"0:{stream['index']}",
        "-c:s", codec_arg,
        output_path,
    ]


def build_transcode_command(ffmpeg_bin: str, source_path: str, output_path: str, profile: VideoProfile) -> List[str]:
    return [
        ffmpeg_bin,
        "-y",
        "-loglevel", "error",
        "-i", source_path,
        "-map", "0",
        "-c:v", profile.codec,
        "-preset", profile.preset,
        "-tune", profile.tune,
        "-rc", profile.rc,
        "-qp", str(profile.qp),
        "-c:a", "copy",
        "-c:s", "copy",
        output_path,
    ]


def build_quality_command(ffmpeg_bin: str, distorted_path: str, reference_path: str, metric: str) -> List[str]:
    return [
        ffmpeg_bin,
        "-hide_banner",
        "-i", distorted_path,
        "-i", reference_path,
        "-lavfi", f"[0:v][1:v]{metric}",
        "-f", "null",
        "-",
    ]


def parse_ssim(stderr: str) -> Optional[float]:
    m = SSIM_PATTERN.search(stderr or "")
    return float(m.group(1)) if m else None


def parse_psnr(stderr: str) -> Optional[float]:
    m = PSNR_PATTERN.search(stderr or "")
    if not m or m.group(1) == "inf":
        return None
    return float(m.group(1))


class FfmpegMediaOperations:
    """subtitle extraction and transcoding through the ffmpeg cli"""

    def __init__(
        self,
        output_dir: str = None,
        ffmpeg_bin: str = None,
        ffprobe_bin: str = None,
        profile: VideoProfile = None,
        measure_quality: bool = None,
    ):
        self.output_dir = output_dir or settings.OUTPUT_DIR
        self.ffmpeg_bin = ffmpeg_bin or settings.FFMPEG_BIN
        self.ffprobe_bin = ffprobe_bin or settings.FFPROBE_BIN
        self.profile = profile or VideoProfile()
        self.measure_quality = settings.VIDEO_MEASURE_QUALITY if measure_quality is None else measure_quality

    def _check_source(self, source_path: str):
        if not os.path.isfile(source_path):
            raise SourceMissingError(f"source file not found: {source_path}")
        os.makedirs(self.output_dir, exist_ok=True)

    async def extract_subtitles(self, source_path: str, record: FileRecord) -> OperationResult:
        self._check_source(source_path)

        streams = await asyncio.to_thread(probe_streams, source_path, self.ffprobe_bin)
        stream = first_subtitle_stream(streams)
        if not stream:
            raise MediaOperationError(f"no subtitle stream in {os.path.basename(source_path)}")

        extension, _ = SUBTITLE_OUTPUTS.get((stream.get("codec_name") or "").lower(), DEFAULT_SUBTITLE_OUTPUT)
        output_path = os.path.join(self.output_dir, f"{output_stem(record)}.{extension}")
        cmd = build_subtitle_command(self.ffmpeg_bin, source_path, stream, output_path)

        logger.info(f"extracting subtitles: {' '.join(cmd)}")
        await asyncio.to_thread(_run, cmd)
        return OperationResult(output_path=output_path)

    async def transcode(self, source_path: str, record: FileRecord) -> OperationResult:
        self._check_source(source_path)

        output_name = record.cleaned_name or os.path.basename(source_path)
        output_path = os.path.join(self.output_dir, output_name)
        if os.path.abspath(output_path) == os.path.abspath(source_path):
            raise MediaOperationError(f"output would overwrite source: {source_path}")

        cmd = build_transcode_command(self.ffmpeg_bin, source_path, output_path, self.profile)
        logger.info(f"encoding video: {' '.join(cmd)}")
        await asyncio.to_thread(_run, cmd)

        result = OperationResult(output_path=output_path)
        if self.measure_quality:
            result.ssim_score, result.psnr_score = await self._measure(output_path, source_path)
        return result

    async def _measure(self, distorted_path: str, reference_path: str) -> Tuple[Optional[float], Optional[float]]:
        """quality scores are best effort; a failed measurement never fails the encode"""
        scores = []
        for metric, parser in (("ssim", parse_ssim), ("psnr", parse_psnr)):
            cmd = build_quality_command(self.ffmpeg_bin, distorted_path, reference_path, metric)
            try:
                completed = await asyncio.to_thread(_run, cmd)
                scores.append(parser(completed.stderr))
            except MediaOperationError as e:
                logger.warning(f"{metric} measurement failed for {distorted_path}: {e}")
                scores.append(None)
        return scores[0], scores[1]
