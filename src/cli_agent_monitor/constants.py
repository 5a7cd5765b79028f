"""Constants for CLI Agent Monitor (CAM).

This module defines the default values used throughout the monitor: polling
cadence, capture sizes, classifier windows and confidences, and the timing
budgets of the built-in completion strategies.

CAM watches an interactive AI coding agent (Claude Code and similar CLIs)
running in a tmux pane and infers, from raw terminal output alone, what the
agent is doing and when a task is done.
"""

# =============================================================================
# Event Monitor Configuration
# =============================================================================
# Interval between two captures of the monitored pane (milliseconds)
DEFAULT_POLL_INTERVAL_MS = 500

# Number of trailing pane lines captured on every poll
DEFAULT_CAPTURE_LINES = 30

# No-output duration after which a silence event is emitted (milliseconds)
# Silence events repeat once per multiple of this threshold
DEFAULT_SILENCE_THRESHOLD_MS = 3000

# Upper bound for a single capture call; a hung tmux call is abandoned after this
DEFAULT_CAPTURE_TIMEOUT_MS = 5000

# Environment variables that override the monitor defaults
ENV_POLL_INTERVAL_MS = "CAM_POLL_INTERVAL_MS"
ENV_CAPTURE_LINES = "CAM_CAPTURE_LINES"
ENV_SILENCE_THRESHOLD_MS = "CAM_SILENCE_THRESHOLD_MS"
ENV_CAPTURE_TIMEOUT_MS = "CAM_CAPTURE_TIMEOUT_MS"
ENV_COMPLETION_METHOD = "CAM_COMPLETION_METHOD"

# =============================================================================
# State Classifier Configuration
# =============================================================================
# Trailing lines of output analyzed per classification
CLASSIFIER_WINDOW_LINES = 50

# Menu options are only read from the most recent lines; older numbered
# lines are scrollback history, not an active menu
MENU_WINDOW_LINES = 15

# Idle prompts only count when they sit at the very bottom of the pane
IDLE_WINDOW_LINES = 5

# Minimum number of distinct options for a numbered/lettered menu
MIN_MENU_OPTIONS = 2

# Confidence assigned to each detected state. These are empirically chosen
# defaults, not calibrated probabilities.
MIN_CONFIDENCE = 0.3
PERMISSION_CONFIDENCE = 0.9
QUESTION_CONFIDENCE = 0.85
ERROR_CONFIDENCE = 0.8
TOOL_USE_CONFIDENCE = 0.75
WORKING_CONFIDENCE = 0.7
COMPLETE_CONFIDENCE = 0.6
IDLE_CONFIDENCE = 0.7
IDLE_FALLBACK_CONFIDENCE = 0.65

# Context lines above a permission prompt searched for command/file details
PERMISSION_CONTEXT_LINES = 5

# =============================================================================
# Completion Detection Configuration
# =============================================================================
# The monitor emits a complete event only when the completion heuristic is
# strictly more confident than this
COMPLETION_EVENT_MIN_CONFIDENCE = 0.6

# Confidence of the "work finished" signal (agent left the working state)
WORK_FINISHED_CONFIDENCE = 0.65

# Default overall deadline for detect() and the wait helpers (milliseconds)
DEFAULT_DETECT_TIMEOUT_MS = 120000
DEFAULT_STATE_WAIT_TIMEOUT_MS = 60000

# State detection waits for this much quiet before trusting an idle-looking
# screen, so a transient prompt flicker does not end the task
STATE_DETECTION_SILENCE_MS = 2000

# How often the wait helpers re-check elapsed silence (milliseconds)
SILENCE_CHECK_INTERVAL_MS = 100
COMPLETION_CHECK_INTERVAL_MS = 500

# Default hybrid strategy: state detection first, silence as the fallback
DEFAULT_FALLBACK_SILENCE_MS = 5000
DEFAULT_PRIMARY_BUDGET_MS = 30000
DEFAULT_FALLBACK_BUDGET_MS = 90000

# =============================================================================
# Tmux Configuration
# =============================================================================
# tmux pane ids carry a leading percent sign (e.g. "%3")
TMUX_PANE_ID_PREFIX = "%"
