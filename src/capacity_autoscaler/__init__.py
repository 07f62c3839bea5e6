"""
Capacity autoscaler: threshold evaluation, alerting, scaling decisions and
capacity trend analysis
"""

__version__ = "0.1.0"
