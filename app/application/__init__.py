"""
Application layer for the booking lifecycle.

- use_cases/: one class per lifecycle operation
- interfaces/: ports implemented by infrastructure adapters
- effects.py: post-commit effects written to the outbox
"""
