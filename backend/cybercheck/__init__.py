"""
CyberCheck - PIN-based classroom attendance with GPS plausibility checks
"""
__version__ = "1.0.0"
