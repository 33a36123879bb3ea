"""
Assistant actions triggered by host events.

Every action follows the same pending-operation discipline: register a
pending output, do the remote work (inline, via an internal message, or via
timer-driven continuations), and resolve the pending output exactly once.
"""
