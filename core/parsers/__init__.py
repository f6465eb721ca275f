"""Entity extractors used by the query interpreter."""

from .names import extract_student_name
from .subjects import extract_subject, subject_label, subject_matches
from .time_reference import extract_time_reference
from .types import TimeReference
from .voice import is_voice_request, strip_voice_framing

__all__ = [
    "TimeReference",
    "extract_student_name",
    "extract_subject",
    "extract_time_reference",
    "is_voice_request",
    "strip_voice_framing",
    "subject_label",
    "subject_matches",
]
