"""Transcript data types, chunk stitching and display formatting."""
from dataclasses import asdict, dataclass, field, replace
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class TranscriptionSegment:
    start: float  # seconds
    end: float
    text: str

    def shifted(self, offset: float) -> 'TranscriptionSegment':
        return replace(self, start=self.start + offset, end=self.end + offset)


@dataclass
class BatchTranscriptionResult:
    """Returned by ParakeetModel.transcribe().

    Attributes:
        text: Full transcript.
        segments: Timed pieces of the transcript, in order. Audio longer than
            one chunk gets one segment per chunk.

    Example::

        result = model.transcribe("talk.mp4")
        for seg in result.segments:
            print(format_timestamp(seg.start), seg.text)
    """
    text: str
    segments: List[TranscriptionSegment] = field(default_factory=list)


@dataclass(frozen=True)
class AlignedSegment:
    start: str
    end: str
    speaker: str
    text: str

    def to_dict(self) -> dict:
        return asdict(self)


def stitch_results(chunks: Iterable[Tuple[float, BatchTranscriptionResult]]) -> BatchTranscriptionResult:
    """Merge per-chunk results given as ``(offset_seconds, result)`` pairs.

    Segments keep chunk order and are moved onto the global timeline. Text
    from overlapping windows is not deduplicated.
    """
    segments = []
    for offset, result in chunks:
        segments.extend(seg.shifted(offset) for seg in result.segments)
    text = ' '.join(seg.text for seg in segments)
    return BatchTranscriptionResult(text=text, segments=segments)


def format_timestamp(seconds: float) -> str:
    """``MM:SS.mmm``; minutes keep counting past 59."""
    total_ms = int(round(seconds * 1000))
    mm, rest = divmod(total_ms, 60_000)
    ss, ms = divmod(rest, 1000)
    return f"{mm:02d}:{ss:02d}.{ms:03d}"


def align_segments(result: BatchTranscriptionResult, speaker: str = 'Local') -> List[AlignedSegment]:
    return [
        AlignedSegment(
            start=format_timestamp(seg.start),
            end=format_timestamp(seg.end),
            speaker=speaker,
            text=seg.text,
        )
        for seg in result.segments
    ]
