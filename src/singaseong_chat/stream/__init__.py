"""Incremental parsing of streamed generation responses."""

from singaseong_chat.stream.aggregator import StreamSession, aggregate, iter_envelopes, iter_text
from singaseong_chat.stream.decoder import LineDecoder
from singaseong_chat.stream.detector import FormatDetector
from singaseong_chat.stream.extractor import extract_text, is_control
from singaseong_chat.stream.parser import NDJSONParser, SSEParser

__all__ = [
    "FormatDetector",
    "LineDecoder",
    "NDJSONParser",
    "SSEParser",
    "StreamSession",
    "aggregate",
    "extract_text",
    "is_control",
    "iter_envelopes",
    "iter_text",
]
