"""
Utility helpers - dates and MongoDB ids.
"""
