from cli_agent_monitor.detection.classifier import (
    assess_completion,
    classify,
    detect_completion,
    extract_permission_details,
    extract_question_options,
)
from cli_agent_monitor.detection.differ import diff_output
from cli_agent_monitor.detection.patterns import (
    PatternCategory,
    PatternMatch,
    SignalPattern,
    extract_plan_file,
    first_match,
    has_match,
    match_patterns,
    strip_ansi,
)

__all__ = [
    "PatternCategory",
    "PatternMatch",
    "SignalPattern",
    "assess_completion",
    "classify",
    "detect_completion",
    "diff_output",
    "extract_permission_details",
    "extract_plan_file",
    "extract_question_options",
    "first_match",
    "has_match",
    "match_patterns",
    "strip_ansi",
]
