class VideoProcessingError(Exception):
    """ffmpeg/ffprobe failed, timed out or produced unusable output."""


class InferenceError(Exception):
    """The vision model call failed."""


class UploadValidationError(ValueError):
    """The uploaded file is not an accepted video."""


class UploadTooLarge(Exception):
    """The upload exceeded MAX_FILE_SIZE."""
