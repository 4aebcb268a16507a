# comic_captions/exceptions.py


class ComicCaptionsError(Exception):
    """Base class for errors raised by this package."""


class TextGenerationError(ComicCaptionsError):
    """The text-generation service could not be reached or refused the request."""


class MalformedResponseError(TextGenerationError):
    """The service answered, but not with the shape we asked for."""


class ImageLoadError(ComicCaptionsError):
    """The source image could not be fetched or decoded. Not recoverable for the page."""


class CompositionError(ComicCaptionsError):
    """Drawing or encoding the composited page failed."""
