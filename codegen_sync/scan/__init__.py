"""Scheduling of copies from the generated-code source repository.

History is walked newest-first to find pending copies, and the copies are
replayed oldest-first so downstream pull requests follow source order.
"""
