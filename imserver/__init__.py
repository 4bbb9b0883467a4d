"""Instant-messaging backend pieces: an HTTP gate, a framed TCP chat server and their support code."""

__version__ = "0.1.0"