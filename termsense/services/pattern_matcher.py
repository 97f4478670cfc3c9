"""PatternMatcher for classifying terminal output.

Evaluates an ordered table of named rules against the latest output chunk
and the session's rolling buffer. The first rule that matches decides the
directive; a rule may match with Directive.NONE to stop evaluation without
changing anything. Order runs from the most specific signal (an explicit
question UI) to the least specific (any visible output while busy).
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from urllib.parse import unquote

from termsense.models.activity import ActivityStatus, AgentState

# Control sequence patterns stripped before text matching
_CSI_RE = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]")
_OSC_RE = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")
_CHARSET_RE = re.compile(r"\x1b[()][AB012]")
_KEYPAD_RE = re.compile(r"\x1b[=>]")

# OSC 7 current directory report: ESC ] 7 ; file://host/path (BEL | ESC \)
_OSC7_RE = re.compile(r"\x1b\]7;file://[^/]*(/[^\x07\x1b]*)(?:\x07|\x1b\\)")


def strip_ansi(text: str) -> str:
    """Remove terminal control sequences from text."""
    text = _CSI_RE.sub("", text)
    text = _OSC_RE.sub("", text)
    text = _CHARSET_RE.sub("", text)
    return _KEYPAD_RE.sub("", text)


def extract_working_directory(chunk: str) -> str | None:
    """Return the directory reported by an OSC 7 sequence in ``chunk``, if any."""
    match = _OSC7_RE.search(chunk)
    if not match:
        return None
    return unquote(match.group(1))


class Directive(str, Enum):
    """What the arbitration layer should do with a chunk."""

    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    WAITING_INPUT = "waiting-input"
    PROCESSING = "processing"
    IDLE = "idle"
    EXTEND_PROCESSING = "extend-processing"
    NONE = "none"


@dataclass
class MatchContext:
    """Inputs for one evaluation."""

    chunk: str
    buffer: str
    status: ActivityStatus = ActivityStatus.SHELL
    pending_forced_exit: bool = False
    hooks_priority: bool = False

    @cached_property
    def stripped_chunk(self) -> str:
        return strip_ansi(self.chunk)

    @cached_property
    def stripped_buffer(self) -> str:
        return strip_ansi(self.buffer)

    @property
    def agent_active(self) -> bool:
        return self.status.agent_active

    @property
    def state(self) -> AgentState:
        return self.status.state


@dataclass
class MatchResult:
    """Outcome of an evaluation."""

    directive: Directive
    rule: str | None = None  # Name of the rule that matched, None if nothing did


@dataclass
class Rule:
    """A named predicate that proposes a directive, or None when it does not apply."""

    name: str
    evaluate: Callable[[MatchContext], Directive | None] = field(repr=False)


class PatternMatcher:
    """Classifies terminal output into state directives.

    Stateless per call: everything needed is passed in a MatchContext, and
    the rule table below is the single source of truth for precedence.
    """

    # Shell-integration sequences (VS Code OSC 633, FinalTerm/iTerm2 OSC 133)
    OSC_633 = {
        "prompt_start": re.compile(r"\x1b\]633;A(?:\x07|\x1b\\)"),
        "prompt_end": re.compile(r"\x1b\]633;B(?:\x07|\x1b\\)"),
        "command_start": re.compile(r"\x1b\]633;C(?:\x07|\x1b\\)"),
        "command_end": re.compile(r"\x1b\]633;D(?:;\d+)?(?:\x07|\x1b\\)"),
    }
    OSC_133 = {
        "prompt_start": re.compile(r"\x1b\]133;A(?:\x07|\x1b\\)"),
        "prompt_end": re.compile(r"\x1b\]133;B(?:\x07|\x1b\\)"),
        "command_start": re.compile(r"\x1b\]133;C(?:\x07|\x1b\\)"),
        "command_end": re.compile(r"\x1b\]133;D(?:;\d+)?(?:\x07|\x1b\\)"),
    }

    # Synchronized output (CSI ? 2026 h / l)
    SYNC_OUTPUT_START = re.compile(r"\x1b\[\?2026h")
    SYNC_OUTPUT_END = re.compile(r"\x1b\[\?2026l")

    # Agent prompt glyph at the end of the screen
    AGENT_PROMPT = re.compile(r"❯\s*\Z")
    # Shell prompt: bare > or $ on its own line
    SHELL_PROMPT = re.compile(r"(?:^|\n|\r)\s*[>$]\s*\Z")
    # After an interrupt any trailing > or $ counts
    LENIENT_SHELL_PROMPT = re.compile(r"[>$]\s*\Z")
    BARE_SHELL_PROMPT = re.compile(r"^[>$]\s*$")

    AGENT_STARTUP = re.compile(r"Claude Code|claude-code|╭─|Tips:", re.IGNORECASE)
    # Ink spinner frames and the tool execution marker
    SPINNER = re.compile(r"[⠋⠙⠹⠸⠼⠴⠦⠧⠇⠏⏺]")

    # Radio buttons, checkboxes, arrow hints and "choose/select" phrasing
    SELECTION_UI = re.compile(
        r"[○●◯◉☐☑☒□■]"
        r"|^\s*\(\s*[●○x ]?\s*\)"
        r"|^\s*\[\s*[xX ]?\s*\]"
        r"|Use arrow"
        r"|Select.*:"
        r"|Choose.*:"
        r"|press enter",
        re.IGNORECASE | re.MULTILINE,
    )
    NUMBERED_OPTION = re.compile(r"^\s*(?:[❯>→]\s*)?(?:\d+[.)]|\[\d+\])\s+\S", re.MULTILINE)
    # Trailing question, y/n prompts and the "Other" choice of structured questions
    INPUT_REQUEST = re.compile(
        r"\?\s*$|\?\s*\n|\(y/n\)|\(Y/n\)|Other\s*$",
        re.IGNORECASE | re.MULTILINE,
    )

    def __init__(self):
        self.rules: list[Rule] = [
            Rule("forced_exit_prompt", self._forced_exit_prompt),
            Rule("hooks_priority", self._hooks_priority),
            Rule("agent_startup", self._agent_startup),
            Rule("agent_exit", self._agent_exit),
            Rule("input_request", self._input_request),
            Rule("shell_integration", self._shell_integration),
            Rule("synchronized_output", self._synchronized_output),
            Rule("agent_prompt", self._agent_prompt),
            Rule("spinner", self._spinner),
            Rule("visible_output", self._visible_output),
        ]

    def evaluate(self, context: MatchContext) -> MatchResult:
        """Run the rule table against a chunk.

        Args:
            context: Chunk, buffer and current session status.

        Returns:
            MatchResult with the directive of the first matching rule.
        """
        for rule in self.rules:
            directive = rule.evaluate(context)
            if directive is not None:
                return MatchResult(directive=directive, rule=rule.name)
        return MatchResult(directive=Directive.NONE)

    # Signal helpers

    def is_shell_prompt(self, text: str) -> bool:
        """Shell prompt at the end of text with no agent prompt alongside it."""
        return bool(self.SHELL_PROMPT.search(text)) and not self.AGENT_PROMPT.search(text)

    def is_selection_ui(self, text: str) -> bool:
        if self.SELECTION_UI.search(text):
            return True
        return len(self.NUMBERED_OPTION.findall(text)) >= 2

    def is_input_request(self, text: str) -> bool:
        return bool(self.INPUT_REQUEST.search(text))

    # Rules, in precedence order

    def _forced_exit_prompt(self, ctx: MatchContext) -> Directive | None:
        if not ctx.pending_forced_exit:
            return None
        text = ctx.stripped_buffer
        if self.SHELL_PROMPT.search(text) or self.LENIENT_SHELL_PROMPT.search(text):
            return Directive.DEACTIVATE
        return Directive.NONE

    def _hooks_priority(self, ctx: MatchContext) -> Directive | None:
        if not ctx.hooks_priority:
            return None
        if ctx.agent_active and self.is_shell_prompt(ctx.stripped_buffer):
            return Directive.DEACTIVATE
        return Directive.NONE

    def _agent_startup(self, ctx: MatchContext) -> Directive | None:
        if ctx.agent_active:
            return None
        if (
            self.AGENT_STARTUP.search(ctx.stripped_chunk)
            or self.SPINNER.search(ctx.chunk)
            or self.AGENT_PROMPT.search(ctx.stripped_buffer)
        ):
            return Directive.ACTIVATE
        return None

    def _agent_exit(self, ctx: MatchContext) -> Directive | None:
        if not ctx.agent_active:
            # Plain shell output; nothing else applies until the agent starts
            return Directive.NONE
        if self.is_shell_prompt(ctx.stripped_buffer):
            return Directive.DEACTIVATE
        return None

    def _input_request(self, ctx: MatchContext) -> Directive | None:
        text = ctx.stripped_buffer
        if self.is_selection_ui(text) or self.is_input_request(text):
            return Directive.WAITING_INPUT
        return None

    def _shell_integration(self, ctx: MatchContext) -> Directive | None:
        for markers in (self.OSC_633, self.OSC_133):
            if markers["command_start"].search(ctx.chunk):
                return Directive.PROCESSING
            if markers["command_end"].search(ctx.chunk):
                return Directive.EXTEND_PROCESSING
            if markers["prompt_start"].search(ctx.chunk) or markers["prompt_end"].search(ctx.chunk):
                if ctx.state == AgentState.WAITING_INPUT:
                    return Directive.NONE
                return Directive.IDLE
        return None

    def _synchronized_output(self, ctx: MatchContext) -> Directive | None:
        # Redraws on resize also use these, so they never start processing
        if self.SYNC_OUTPUT_START.search(ctx.chunk):
            return Directive.NONE
        if self.SYNC_OUTPUT_END.search(ctx.chunk):
            if ctx.state == AgentState.PROCESSING:
                return Directive.EXTEND_PROCESSING
            return Directive.NONE
        return None

    def _agent_prompt(self, ctx: MatchContext) -> Directive | None:
        if not self.AGENT_PROMPT.search(ctx.stripped_buffer):
            return None
        if ctx.state == AgentState.WAITING_INPUT:
            return Directive.NONE
        return Directive.IDLE

    def _spinner(self, ctx: MatchContext) -> Directive | None:
        if self.SPINNER.search(ctx.chunk):
            return Directive.PROCESSING
        return None

    def _visible_output(self, ctx: MatchContext) -> Directive | None:
        if ctx.state != AgentState.PROCESSING:
            return None
        visible = ctx.stripped_chunk.strip()
        if visible and not self.BARE_SHELL_PROMPT.match(visible):
            return Directive.EXTEND_PROCESSING
        return None
