"""Signal patterns for agent terminal output.

Each category is an ordered tuple of ``SignalPattern`` records. A pattern is
a compiled regex plus an optional extractor that turns a match into a small
field map (``{"command": ...}``, ``{"option": ...}``). All matching runs on
ANSI-stripped text and is stateless.
"""

import os
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

# CSI sequences (colors, cursor moves, erase) and two-byte escapes
ANSI_CODE_PATTERN = re.compile(r"\x1b(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")
# Operating system commands (window titles, hyperlinks)
OSC_PATTERN = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")


class PatternCategory(str, Enum):
    PERMISSION = "permission"
    QUESTION = "question"
    ERROR = "error"
    TOOL_USE = "tool_use"
    WORKING = "working"
    COMPLETION = "completion"
    IDLE = "idle"
    PLAN_FILE = "plan_file"


Extractor = Callable[[re.Match], Dict[str, str]]


@dataclass(frozen=True)
class SignalPattern:
    """One textual signature of a state.

    ``repeat`` patterns report every occurrence (menu options); all others
    report their first occurrence only.
    """

    category: PatternCategory
    type: str
    regex: re.Pattern
    extract: Optional[Extractor] = None
    repeat: bool = False


@dataclass(frozen=True)
class PatternMatch:
    category: PatternCategory
    type: str
    raw: str
    groups: Tuple[Optional[str], ...]
    extracted: Optional[Dict[str, str]] = None


def _group(index: int, key: str, default: str = "") -> Extractor:
    def extract(match: re.Match) -> Dict[str, str]:
        value = match.group(index)
        return {key: value.strip() if value else default}

    return extract


def _option(match: re.Match) -> Dict[str, str]:
    return {"key": match.group(1), "option": match.group(2).strip()}


_default_answer = _group(1, "default", "y")


def _permission(type_: str, pattern: str, flags: int = re.IGNORECASE, extract=_default_answer):
    return SignalPattern(PatternCategory.PERMISSION, type_, re.compile(pattern, flags), extract)


def _question(type_: str, pattern: str, flags: int = re.MULTILINE, extract=None, repeat=False):
    return SignalPattern(
        PatternCategory.QUESTION, type_, re.compile(pattern, flags), extract, repeat
    )


def _simple(category: PatternCategory, type_: str, pattern: str, flags: int = 0, extract=None):
    return SignalPattern(category, type_, re.compile(pattern, flags), extract)


# Optional "[y/n]" footer shared by the permission phrasings
_YN_SUFFIX = r"\?[ \t]*(?:\[([YyNn])/([YyNn])\])?"

# Permission requests: an agent is blocked on a human decision
PERMISSION_PATTERNS: Tuple[SignalPattern, ...] = (
    _permission("bash_permission", r"Allow (?:Bash|command|shell).*" + _YN_SUFFIX),
    _permission(
        "file_permission",
        r"Allow (?:Edit|Write|Read|file|reading|writing|editing).*" + _YN_SUFFIX,
    ),
    _permission("mcp_permission", r"Allow (?:MCP|tool).*" + _YN_SUFFIX),
    _permission(
        "generic_permission",
        r"^[ \t]*(?:Allow|Confirm|Approve)[ \t]+(?:(?:this|the|once|always)[ \t]+)?(?:\w+[ \t]*)?"
        + _YN_SUFFIX,
        re.IGNORECASE | re.MULTILINE,
    ),
    _permission("run_permission", r"(?:Would you like|Do you want) to run\b", extract=None),
    _permission("sandbox_permission", r"Do you want to .* outside\b", extract=None),
    # Binary answer footer, e.g. "❯ 1. Yes" / "  2. No"
    _permission(
        "claude_code_yes_no",
        r"^[ \t│]*(?:[❯>][ \t]*)?(?:\d+\.[ \t]+)?(?:Yes|No)[ \t│]*$",
        re.MULTILINE,
        extract=None,
    ),
    _permission(
        "claude_code_permission_block", r"(?:Allow|Run|Execute)[ \t]+(?:once|always)\b", extract=None
    ),
)

# Questions: numbered/lettered menus, y/n footers, plan approval
QUESTION_PATTERNS: Tuple[SignalPattern, ...] = (
    _question(
        "bracket_numbered_options",
        r"^[ \t│]*(?:[❯>][ \t]*)?\[(\d+)\][ \t]+(.+?)[ \t│]*$",
        extract=_option,
        repeat=True,
    ),
    _question(
        "lettered_options",
        r"^[ \t│]*(?:[❯>][ \t]*)?\(([a-z])\)[ \t]+(.+?)[ \t│]*$",
        re.MULTILINE | re.IGNORECASE,
        extract=_option,
        repeat=True,
    ),
    _question(
        "yes_no_question",
        r"\?[ \t]*\[([YyNn])/([YyNn])\][ \t:]*$",
        extract=_group(1, "default", "y"),
    ),
    _question(
        "claude_code_numbered_options",
        r"^[ \t│]*(?:[❯>][ \t]*)?(\d+)\.[ \t]+(.+?)[ \t│]*$",
        extract=_option,
        repeat=True,
    ),
    _question("claude_code_plan_approval", r"Would you like to proceed\?", re.IGNORECASE),
)

PLAN_APPROVAL_TYPE = "claude_code_plan_approval"
NUMBERED_OPTIONS_TYPE = "claude_code_numbered_options"
YES_NO_QUESTION_TYPE = "yes_no_question"

_message = _group(1, "message")

ERROR_PATTERNS: Tuple[SignalPattern, ...] = (
    _simple(PatternCategory.ERROR, "error", r"^[ \t]*(?:Error|ERROR|error):[ \t]*(.+)$",
            re.MULTILINE, _message),
    _simple(PatternCategory.ERROR, "failed", r"^[ \t]*(?:Failed|FAILED|failed):[ \t]*(.+)$",
            re.MULTILINE, _message),
    _simple(
        PatternCategory.ERROR,
        "exception",
        r"^[ \t]*(?:Exception|EXCEPTION|Uncaught|Unhandled):[ \t]*(.+)$",
        re.MULTILINE,
        _message,
    ),
    _simple(PatternCategory.ERROR, "api_error", r"(?:API|api)[ \t]+(?:error|Error|ERROR):[ \t]*(.+)$",
            re.MULTILINE, _message),
)

TOOL_USE_PATTERNS: Tuple[SignalPattern, ...] = (
    _simple(
        PatternCategory.TOOL_USE,
        "run_command",
        r"(?:Run|Running|Executing)[ \t]+(?:command|bash):[ \t]*(.+)$",
        re.IGNORECASE | re.MULTILINE,
        _group(1, "command"),
    ),
    _simple(
        PatternCategory.TOOL_USE,
        "read_file",
        r"(?:Read|Reading)[ \t]+file:[ \t]*(.+)$",
        re.IGNORECASE | re.MULTILINE,
        _group(1, "file"),
    ),
    _simple(
        PatternCategory.TOOL_USE,
        "write_file",
        r"(?:Write|Writing|Edit|Editing)[ \t]+(?:file|to):[ \t]*(.+)$",
        re.IGNORECASE | re.MULTILINE,
        _group(1, "file"),
    ),
    _simple(
        PatternCategory.TOOL_USE,
        "search",
        r"(?:Searching|Search|Grep|Glob):[ \t]*(.+)$",
        re.IGNORECASE | re.MULTILINE,
        _group(1, "query"),
    ),
)

WORKING_PATTERNS: Tuple[SignalPattern, ...] = (
    _simple(PatternCategory.WORKING, "thinking", r"(?:Thinking|thinking|Processing|processing)(?:\.\.\.|…)"),
    _simple(PatternCategory.WORKING, "spinner", r"[⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏⣾⣽⣻⢿⡿⣟⣯⣷]"),
    _simple(PatternCategory.WORKING, "loading", r"(?:Loading|loading|Working|working)(?:\.\.\.|…)"),
    # "✽ Cooking… (6s · ↓ 174 tokens · esc to interrupt)"
    _simple(PatternCategory.WORKING, "claude_code_spinner", r"[✶✢✽✻·✳].*….*\(.*\)"),
    _simple(
        PatternCategory.WORKING,
        "claude_code_working",
        "(?:\U0001f6e0|\U0001f527|⚙)️?[ \\t]*(?:Read|Edit|Write|Bash|Glob|Grep|Task)",
    ),
    _simple(PatternCategory.WORKING, "claude_code_streaming", r"▌[ \t]*$", re.MULTILINE),
    _simple(PatternCategory.WORKING, "claude_code_propagating", r"Propagating…"),
)

COMPLETION_PATTERNS: Tuple[SignalPattern, ...] = (
    _simple(PatternCategory.COMPLETION, "checkmark", r"[✓✔☑]"),
    _simple(
        PatternCategory.COMPLETION,
        "success_message",
        r"\b(?:Successfully|Completed|Done|Finished|Created|Updated|Saved)\b",
        re.IGNORECASE,
    ),
    _simple(
        PatternCategory.COMPLETION,
        "task_complete",
        r"\b(?:task|operation|process)[ \t]+(?:complete|completed|finished|done)\b",
        re.IGNORECASE,
    ),
)

IDLE_PATTERNS: Tuple[SignalPattern, ...] = (
    _simple(PatternCategory.IDLE, "claude_prompt", r"^[ \t]*>[ \t]*$", re.MULTILINE),
    # A ❯ followed by a number is a menu cursor, not the input prompt
    _simple(PatternCategory.IDLE, "claude_code_prompt", r"❯(?![ \t]*\d+\.)"),
    _simple(PatternCategory.IDLE, "claude_code_input_line", r"❯[ \t]*.+\n─+"),
    _simple(PatternCategory.IDLE, "idle_indicator", r"\|[ \t]*idle[ \t]*$", re.IGNORECASE | re.MULTILINE),
    _simple(
        PatternCategory.IDLE,
        "input_prompt",
        r"^(?:Enter|Input|Type|Provide)\b.*:[ \t]*$",
        re.IGNORECASE | re.MULTILINE,
    ),
)

PLAN_FILE_PATTERNS: Tuple[SignalPattern, ...] = (
    _simple(
        PatternCategory.PLAN_FILE,
        "claude_plan_file",
        r"(~/\.claude/plans/[\w-]+\.md|/\S+/\.claude/plans/[\w-]+\.md)",
        extract=_group(1, "path"),
    ),
)


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from terminal output."""
    text = OSC_PATTERN.sub("", text)
    return ANSI_CODE_PATTERN.sub("", text)


def match_patterns(text: str, patterns: Sequence[SignalPattern]) -> List[PatternMatch]:
    """Match every pattern of a set against ANSI-stripped text, in pattern order."""
    clean_text = strip_ansi(text)
    matches: List[PatternMatch] = []

    for pattern in patterns:
        if pattern.repeat:
            found = list(pattern.regex.finditer(clean_text))
        else:
            first = pattern.regex.search(clean_text)
            found = [first] if first else []

        for m in found:
            matches.append(
                PatternMatch(
                    category=pattern.category,
                    type=pattern.type,
                    raw=m.group(0),
                    groups=m.groups(),
                    extracted=pattern.extract(m) if pattern.extract else None,
                )
            )

    return matches


def has_match(text: str, patterns: Sequence[SignalPattern]) -> bool:
    clean_text = strip_ansi(text)
    return any(pattern.regex.search(clean_text) for pattern in patterns)


def first_match(text: str, patterns: Sequence[SignalPattern]) -> Optional[PatternMatch]:
    """Return the first match of the highest-ranked matching pattern."""
    for pattern in patterns:
        found = match_patterns(text, (pattern,))
        if found:
            return found[0]
    return None


def extract_plan_file(text: str) -> Optional[str]:
    """Return the plan document path mentioned in the output, with ~ expanded."""
    match = first_match(text, PLAN_FILE_PATTERNS)
    if match is None or not match.extracted or not match.extracted.get("path"):
        return None
    return os.path.expanduser(match.extracted["path"])
