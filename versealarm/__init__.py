"""Verse Alarm: wake-up alarms dismissed by retyping a Bible passage."""
