"""Audio loading and conversion utilities for parakeet_onnx."""
import logging
import os
import shutil
import subprocess
import tempfile

import librosa
import numpy as np
import soundfile as sf

from parakeet_onnx.errors import MediaDecodeError, ResampleError, UnsupportedMediaError

logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
DEFAULT_RES_TYPE = 'soxr_hq'


def convert_to_wav16k(path: str) -> str:
    """Extract the first audio stream of any ffmpeg-readable file into a 16 kHz mono WAV.

    The caller owns the returned temporary file.
    """
    if shutil.which('ffmpeg') is None:
        raise UnsupportedMediaError(f"Cannot decode {path}: not a libsndfile format and ffmpeg is not installed")
    out = tempfile.NamedTemporaryFile(suffix='.wav', delete=False)
    out.close()
    try:
        subprocess.check_call(
            ['ffmpeg', '-y', '-i', path, '-vn', '-map', '0:a:0', '-ar', str(SAMPLE_RATE), '-ac', '1', out.name],
            stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
        )
    except BaseException as exc:
        os.unlink(out.name)
        if isinstance(exc, subprocess.CalledProcessError):
            raise UnsupportedMediaError(f"No decodable audio track in {path}") from exc
        if isinstance(exc, OSError):
            raise UnsupportedMediaError(f"Cannot run ffmpeg on {path}: {exc}") from exc
        raise
    return out.name


def to_mono(audio: np.ndarray) -> np.ndarray:
    """Average a (frames, channels) array down to one channel."""
    if audio.ndim > 1:
        audio = audio.mean(axis=1)
    return audio.astype('float32')


def resample(audio: np.ndarray, orig_sr: int, target_sr: int = SAMPLE_RATE,
             res_type: str = DEFAULT_RES_TYPE) -> np.ndarray:
    if orig_sr == target_sr:
        return audio.astype('float32')
    logger.debug("Resampling %d samples %d Hz -> %d Hz (%s)", len(audio), orig_sr, target_sr, res_type)
    try:
        out = librosa.resample(audio, orig_sr=orig_sr, target_sr=target_sr, res_type=res_type)
    except Exception as exc:
        raise ResampleError(f"Resampling {orig_sr} Hz -> {target_sr} Hz failed: {exc}") from exc
    return out.astype('float32')


def _read(path: str):
    try:
        return sf.read(path, dtype='float32', always_2d=False)
    except sf.LibsndfileError as exc:
        raise MediaDecodeError(f"Decode error in {path}: {exc}") from exc


def load_audio(path: str, target_sr: int = SAMPLE_RATE, res_type: str = DEFAULT_RES_TYPE) -> np.ndarray:
    """Decode ``path`` into mono float32 samples at ``target_sr``.

    libsndfile formats (wav, flac, ogg, mp3, ...) are read directly; anything
    else goes through ffmpeg first.
    """
    if not os.path.isfile(path):
        raise MediaDecodeError(f"No such file: {path}")

    try:
        sf.info(path)
    except sf.LibsndfileError:
        logger.debug("%s is not a libsndfile format, converting with ffmpeg", path)
        wav_path = convert_to_wav16k(path)
        try:
            audio, sr = _read(wav_path)
        finally:
            os.unlink(wav_path)
    else:
        audio, sr = _read(path)

    audio = to_mono(audio)
    return resample(audio, sr, target_sr, res_type)
