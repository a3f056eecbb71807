"""Coach API: streaming chat relay, conversation messages and livestream bookkeeping."""

__version__ = "1.0.0"
