"""
soundprint - recognize recurring sounds from a personal library.

Teach short reference recordings (a doorbell, a smoke alarm), then match
ambient audio against them using lightweight spectral fingerprints.
"""

__version__ = "1.0.0"
__author__ = "Audio Analysis Team"
