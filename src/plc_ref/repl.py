"""Interactive REPL for PLC, powered by prompt_toolkit."""

from __future__ import annotations

import os
import re
import sys
from prompt_toolkit import PromptSession
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.shortcuts import clear

from .lexer import tokenize
from .repl_highlight import PlcHighlightLexer
from .runner import Session, configure_logging, new_session, repl_eval, report_error
from .token_types import TT
from .types import LexError, PlcError
from .utils import DEBUG_PY_TRACE_ENV, debug_py_trace_enabled, stringify

# Zero-width and invisible characters to strip from input.
_INVISIBLE_RE = re.compile("[\u200b\u200c\u200d\ufeff\u00a0\r]")

# Slash commands: name => (description, argument_hint).
_SLASH_CMDS = {
    "/clear": ("Clear the terminal screen", ""),
    "/py-traceback": ("Toggle Python traceback on errors", "[on|off]"),
    "/reset": ("Reset the REPL environment", ""),
}


def open_block_depth(text: str) -> int:
    """Number of DO blocks in *text* still waiting for their END."""
    try:
        tokens = tokenize(text)
    except LexError:
        return 0

    depth = 0

    for tok in tokens:
        if tok.type != TT.KEYWORD.name:
            continue
        if tok.value == "DO":
            depth += 1
        elif tok.value == "END":
            depth = max(depth - 1, 0)

    return depth


class _SlashCompleter(Completer):
    """Autocomplete slash commands on the primary prompt."""

    def get_completions(self, document, complete_event):
        text = document.text_before_cursor
        if not text.startswith("/"):
            return

        for cmd, (desc, hint) in _SLASH_CMDS.items():
            if cmd.startswith(text):
                yield Completion(
                    cmd,
                    start_position=-len(text),
                    display_meta=desc,
                )


def _handle_slash(line: str, session_box: list[Session]) -> bool:
    """Handle slash commands. Returns True if the line was a command."""
    stripped = line.strip()
    if not stripped.startswith("/"):
        return False

    parts = stripped.split(None, 1)
    cmd = parts[0]
    arg = parts[1] if len(parts) > 1 else ""

    if cmd == "/clear":
        clear()
        return True

    if cmd == "/py-traceback":
        if arg.lower() in ("on", "1", "true", "yes"):
            os.environ[DEBUG_PY_TRACE_ENV] = "1"
        elif arg.lower() in ("off", "0", "false", "no"):
            os.environ.pop(DEBUG_PY_TRACE_ENV, None)
        elif arg == "":
            # Toggle.
            if debug_py_trace_enabled():
                os.environ.pop(DEBUG_PY_TRACE_ENV, None)
            else:
                os.environ[DEBUG_PY_TRACE_ENV] = "1"
        else:
            print("Usage: /py-traceback [on|off]", file=sys.stderr)
            return True

        state = "on" if debug_py_trace_enabled() else "off"
        print(f"Python traceback: {state}")
        return True

    if cmd == "/reset":
        session_box[0] = new_session(session_box[0].analyze)
        print("Environment reset.")
        return True

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return True


def _normalize(text: str) -> str:
    """Strip invisible characters from input."""
    return _INVISIBLE_RE.sub("", text)


def _compute_indent(text: str) -> str:
    """Auto-indent for the next continuation line: four spaces per open block."""
    return " " * (4 * open_block_depth(text))


def repl(analyze_first: bool=True) -> None:
    """Interactive read-eval-print loop with prompt_toolkit."""
    # Use a mutable box so /reset can swap the session.
    session_box: list[Session] = [new_session(analyze_first)]

    history = InMemoryHistory()
    lexer = PlcHighlightLexer()

    bindings = KeyBindings()

    @bindings.add("backspace")
    def _backspace(event):
        buf = event.app.current_buffer
        buf.delete_before_cursor(1)
        if buf.text.startswith("/"):
            buf.start_completion()

    @bindings.add("enter")
    def _enter(event):
        buf = event.app.current_buffer
        text = buf.text

        # Inside DO ... END => keep reading lines.
        if not text.startswith("/") and open_block_depth(text) > 0:
            buf.insert_text("\n" + _compute_indent(text))
            return

        buf.validate_and_handle()

    prompt: PromptSession[str] = PromptSession(
        history=history,
        lexer=lexer,
        completer=_SlashCompleter(),
        complete_while_typing=True,
        key_bindings=bindings,
        multiline=True,
        prompt_continuation="... ",
    )

    print("plc repl: Ctrl-D to exit, / for commands")

    while True:
        try:
            text = prompt.prompt(">>> ")
        except EOFError:
            print()
            break
        except KeyboardInterrupt:
            print("KeyboardInterrupt")
            continue

        text = _normalize(text)
        if not text.strip():
            continue

        # Slash command?
        if _handle_slash(text, session_box):
            continue

        try:
            result, is_stmt = repl_eval(text, session_box[0])
        except PlcError as exc:
            report_error(exc)
            continue

        if not is_stmt:
            print(stringify(result))


def main() -> None:
    analyze_first = "--no-analyze" not in sys.argv[1:]
    configure_logging(None)
    repl(analyze_first)


if __name__ == "__main__":
    main()
