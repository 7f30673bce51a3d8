"""Lesson, teacher and authentication services built on the portal client."""
