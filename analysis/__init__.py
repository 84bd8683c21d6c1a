"""
Event log, run metrics and predictive mode comparison.
"""
