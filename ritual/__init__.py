"""Commit domain engine - lifecycle, streaks, archive, journal and reminders."""
