"""gigalink -- GigaChat adapter with streamed tool-call reconstruction."""

__version__ = "0.1.0"
