"""
Logging, Prometheus metrics and the violation monitor.
"""
