"""
Session event tracking for the Railway Deadlock Simulator.
"""
