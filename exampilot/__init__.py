"""
ExamPilot - CBT (Computer Based Testing) API
"""

__version__ = '1.0.0'
