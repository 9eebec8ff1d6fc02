"""
Planning Poker client.

Room synchronization core for real-time collaborative estimation.
"""

__version__ = "0.5.6"
