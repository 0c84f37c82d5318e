"""
Algorithms package for the Railway Deadlock Simulator.
Contains Banker's avoidance, Wait-For Graph detection, and recovery implementations.
"""
