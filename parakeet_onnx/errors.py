"""Exception types raised by parakeet_onnx."""


class ParakeetError(RuntimeError):
    """Base class for every error raised by the transcription pipeline."""


class VocabLoadError(ParakeetError):
    """Vocabulary file missing, unparseable, or without a blank token."""


class MediaDecodeError(ParakeetError):
    """Input audio could not be decoded."""


class UnsupportedMediaError(MediaDecodeError):
    """No decodable audio track in the input."""


class ResampleError(ParakeetError):
    pass


class InferenceError(ParakeetError):
    """A neural inference call failed or produced no usable output."""


class MissingOutputError(InferenceError):
    pass


class ShapeError(ParakeetError):
    """A tensor came back with an unexpected axis layout."""
