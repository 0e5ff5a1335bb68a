"""Two-agent healthcare claims fraud investigation.

A detection agent reasons over claims tools and can delegate deep-dive
investigations to a peer investigation agent; both stream their progress
as events that clients rebuild into live state.
"""

__version__ = "0.1.0"
