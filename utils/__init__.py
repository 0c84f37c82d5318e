"""
Utilities for the Railway Deadlock Simulator.
Scenario loading, Graphviz export, and logging.
"""
