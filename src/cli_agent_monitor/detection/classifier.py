"""State classifier for agent terminal output.

``classify()`` turns a window of raw pane output into a single
``ClassifiedState``. Categories are checked in a fixed priority order and
the first hit wins:

    permission > question > error > tool_use > working > complete > idle > unknown

States that need a human (permission prompts, menus) are checked first so
an idle-looking prompt line under them can never hide them.
"""

import logging
import re
import time
from typing import List, Optional

from cli_agent_monitor.constants import (
    CLASSIFIER_WINDOW_LINES,
    COMPLETE_CONFIDENCE,
    ERROR_CONFIDENCE,
    IDLE_CONFIDENCE,
    IDLE_FALLBACK_CONFIDENCE,
    IDLE_WINDOW_LINES,
    MENU_WINDOW_LINES,
    MIN_CONFIDENCE,
    MIN_MENU_OPTIONS,
    PERMISSION_CONFIDENCE,
    PERMISSION_CONTEXT_LINES,
    QUESTION_CONFIDENCE,
    TOOL_USE_CONFIDENCE,
    WORK_FINISHED_CONFIDENCE,
    WORKING_CONFIDENCE,
)
from cli_agent_monitor.detection.patterns import (
    COMPLETION_PATTERNS,
    ERROR_PATTERNS,
    IDLE_PATTERNS,
    NUMBERED_OPTIONS_TYPE,
    PERMISSION_PATTERNS,
    PLAN_APPROVAL_TYPE,
    QUESTION_PATTERNS,
    TOOL_USE_PATTERNS,
    WORKING_PATTERNS,
    YES_NO_QUESTION_TYPE,
    first_match,
    has_match,
    match_patterns,
    strip_ansi,
)
from cli_agent_monitor.models.state import (
    ClassifiedState,
    CompletionAssessment,
    PermissionDetails,
    StateType,
)

logger = logging.getLogger(__name__)

COMMAND_CONTEXT_PATTERN = re.compile(r"(?:Command|command|Bash|bash):\s*(.+)")
FILE_CONTEXT_PATTERN = re.compile(r"(?:File|file|Path|path):\s*(.+)")
TRAILING_PROMPT_PATTERN = re.compile(r">\s*$")


def _tail(lines: List[str], count: int) -> str:
    return "\n".join(lines[-count:]) if count > 0 else ""


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _unique(options: List[str]) -> List[str]:
    seen = set()
    result = []
    for option in options:
        if option and option not in seen:
            seen.add(option)
            result.append(option)
    return result


def classify(
    output: str,
    window: int = CLASSIFIER_WINDOW_LINES,
    min_confidence: float = MIN_CONFIDENCE,
    timestamp: Optional[float] = None,
) -> ClassifiedState:
    """Classify the interactive state shown in the last ``window`` lines of output.

    Args:
        output: Raw pane output, ANSI codes included
        window: Number of trailing lines analyzed
        min_confidence: Confidence reported for ``unknown``
        timestamp: Epoch milliseconds stamped on the result (defaults to now)

    Returns:
        A new ClassifiedState. Never raises; unrecognizable input yields
        ``unknown`` at ``min_confidence``.
    """
    if timestamp is None:
        timestamp = time.time() * 1000

    lines = (output or "").split("\n")
    recent = _tail(lines, max(window, 1))
    clean = strip_ansi(recent)
    clean_lines = clean.split("\n")

    def state(type_: StateType, confidence: float, detail=None, options=None) -> ClassifiedState:
        return ClassifiedState(
            type=type_,
            detail=detail,
            options=options,
            confidence=_clamp(confidence),
            timestamp=timestamp,
            raw_window=recent,
        )

    # Permission requests block the agent until a human answers
    permission = first_match(clean, PERMISSION_PATTERNS)
    if permission:
        return state(
            StateType.PERMISSION,
            PERMISSION_CONFIDENCE,
            detail=permission.type.replace("_permission", ""),
        )

    # Menus only count near the bottom; older numbered lines are history
    has_plan_approval = has_match(
        clean, [p for p in QUESTION_PATTERNS if p.type == PLAN_APPROVAL_TYPE]
    )
    menu_text = _tail(clean_lines, MENU_WINDOW_LINES)
    question_matches = match_patterns(menu_text, QUESTION_PATTERNS)

    if question_matches or has_plan_approval:
        menu_options = _unique(
            [
                m.extracted["option"]
                for m in question_matches
                if m.type == NUMBERED_OPTIONS_TYPE and m.extracted
            ]
        )
        if len(menu_options) >= MIN_MENU_OPTIONS or has_plan_approval:
            return state(
                StateType.QUESTION,
                QUESTION_CONFIDENCE,
                detail="plan_approval" if has_plan_approval else None,
                options=menu_options or None,
            )

        other_options = _unique(
            [
                m.extracted["option"]
                for m in question_matches
                if m.type != NUMBERED_OPTIONS_TYPE and m.extracted and "option" in m.extracted
            ]
        )
        if len(other_options) >= MIN_MENU_OPTIONS:
            return state(StateType.QUESTION, QUESTION_CONFIDENCE, options=other_options)

        yes_no = next((m for m in question_matches if m.type == YES_NO_QUESTION_TYPE), None)
        if yes_no:
            default = (yes_no.extracted or {}).get("default") or "y"
            return state(
                StateType.QUESTION,
                QUESTION_CONFIDENCE,
                detail=f"default: {default}",
                options=["Yes", "No"],
            )

    error = first_match(clean, ERROR_PATTERNS)
    if error:
        message = (error.extracted or {}).get("message") or error.raw.strip()
        return state(StateType.ERROR, ERROR_CONFIDENCE, detail=message)

    tool = first_match(clean, TOOL_USE_PATTERNS)
    if tool:
        extracted = tool.extracted or {}
        target = extracted.get("command") or extracted.get("file") or extracted.get("query") or ""
        return state(StateType.TOOL_USE, TOOL_USE_CONFIDENCE, detail=f"{tool.type}: {target}")

    if has_match(clean, WORKING_PATTERNS):
        return state(StateType.WORKING, WORKING_CONFIDENCE)

    if has_match(clean, COMPLETION_PATTERNS):
        return state(StateType.COMPLETE, COMPLETE_CONFIDENCE)

    # Prompts only mean idle when they sit at the bottom of the pane
    last_lines = _tail(clean_lines, IDLE_WINDOW_LINES)
    idle = first_match(last_lines, IDLE_PATTERNS)
    if idle:
        return state(StateType.IDLE, IDLE_CONFIDENCE, detail=idle.type)

    if TRAILING_PROMPT_PATTERN.search(last_lines.strip()):
        return state(StateType.IDLE, IDLE_FALLBACK_CONFIDENCE, detail="prompt detected")

    return state(StateType.UNKNOWN, min_confidence)


def assess_completion(
    current: ClassifiedState, previous: Optional[ClassifiedState] = None
) -> CompletionAssessment:
    """Decide whether the move from ``previous`` to ``current`` looks like a finished task."""
    if current.needs_user_action:
        return CompletionAssessment(
            complete=False, reason=f"awaiting {current.type.value}", confidence=0.95
        )

    if current.type == StateType.ERROR:
        return CompletionAssessment(complete=True, reason="error detected", confidence=0.8)

    if current.type == StateType.IDLE:
        return CompletionAssessment(
            complete=True, reason="idle prompt detected", confidence=current.confidence
        )

    if (
        previous is not None
        and previous.type == StateType.WORKING
        and current.type not in (StateType.WORKING, StateType.TOOL_USE)
    ):
        return CompletionAssessment(
            complete=True, reason="work finished", confidence=WORK_FINISHED_CONFIDENCE
        )

    if current.type == StateType.COMPLETE:
        return CompletionAssessment(
            complete=True, reason="completion marker detected", confidence=current.confidence
        )

    if current.type in (StateType.WORKING, StateType.TOOL_USE):
        return CompletionAssessment(complete=False, reason="still working", confidence=0.7)

    return CompletionAssessment(complete=False, reason="unknown state", confidence=0.3)


def detect_completion(output: str, previous_output: str) -> CompletionAssessment:
    """Classify two successive captures and assess whether the task finished."""
    current = classify(output)
    previous = classify(previous_output) if previous_output else None
    return assess_completion(current, previous)


def extract_permission_details(output: str) -> Optional[PermissionDetails]:
    """Describe the pending permission prompt, or None if there is none.

    The command or file being requested is read from the few lines right
    above the prompt line.
    """
    clean = strip_ansi(output or "")
    match = first_match(clean, PERMISSION_PATTERNS)
    if match is None:
        return None

    lines = clean.split("\n")
    prompt_line = -1
    for index, line in enumerate(lines):
        if any(p.regex.search(line) for p in PERMISSION_PATTERNS[:3]):
            prompt_line = index
            break

    command = None
    file = None
    if prompt_line > 0:
        context = "\n".join(lines[max(0, prompt_line - PERMISSION_CONTEXT_LINES) : prompt_line])
        command_match = COMMAND_CONTEXT_PATTERN.search(context)
        if command_match:
            command = command_match.group(1).strip()
        file_match = FILE_CONTEXT_PATTERN.search(context)
        if file_match:
            file = file_match.group(1).strip()

    logger.debug(f"Permission prompt detected: type={match.type} command={command} file={file}")
    return PermissionDetails(type=match.type.replace("_permission", ""), command=command, file=file)


def extract_question_options(output: str) -> List[str]:
    """Return every menu option found in the output, in screen order."""
    return [
        m.extracted["option"]
        for m in match_patterns(output or "", QUESTION_PATTERNS)
        if m.extracted and m.extracted.get("option")
    ]
