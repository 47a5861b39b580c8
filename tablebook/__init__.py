"""Restaurant reservation lifecycle management"""

__version__ = "1.0.0"
