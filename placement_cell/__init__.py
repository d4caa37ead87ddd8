"""
Placement Cell Exam Engine
Online aptitude/technical exams for the Training & Placement Cell.

Architecture:
- MongoDB: exams, attempts, student profiles, audit logs
- FastAPI: officer exam management and the student exam flow
- JWT: issued by the placement portal, verified here
"""

__version__ = "1.0.0"
