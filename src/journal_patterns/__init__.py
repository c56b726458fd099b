"""Journal Pattern Reflection Engine.

Reads a user's journal entries and, once there is enough longitudinal
signal, asks Gemini for a short, non-clinical reflection on patterns that
persist across days or weeks.
"""

__version__ = "0.1.0"
