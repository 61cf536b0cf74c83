"""
Realtime call transcript engine.

Reduces the event stream of a realtime conversational API into an ordered,
de-duplicated transcript of messages, tool calls and tool outputs.
"""

__version__ = "1.0.0"
