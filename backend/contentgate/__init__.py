"""Licensed content gateway: signed, time-limited access to purchased content"""

__version__ = "1.0.0"
