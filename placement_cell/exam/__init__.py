"""
Exam engine: timing, eligibility, scoring and the attempt state machine.
"""
