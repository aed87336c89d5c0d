"""Protocol layer: frame codec, command catalog, transactions, and response parsing."""

from .framing import Frame, build_frame, parse_frame
from .commands import COMMANDS, Opcode, build_command
from .sequencer import ACTIVATION_SCRIPT, ScriptStep, run_script, transact
