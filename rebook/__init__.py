"""rebook - sentence-synchronized reading and narration for EPUB books."""

__version__ = "0.1.0"
