"""
Service modules for Lifeline
"""
