"""
Lifeline - Personal Emergency SOS

Arms a cancellable countdown, then notifies emergency contacts by phone
and a single batch text carrying the user's location and primary
hospital, and records the resulting emergency event.
"""

__version__ = "1.0.0"
__author__ = "Lifeline Development Team"
