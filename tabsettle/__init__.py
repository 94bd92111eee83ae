"""Table-session settlement engine for restaurant point of sale"""

__version__ = "0.1.0"
