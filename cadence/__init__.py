"""Lead Cadence Engine"""

__version__ = "1.0.0"
