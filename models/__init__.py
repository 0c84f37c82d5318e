"""
Models package for the Railway Deadlock Simulator.
Railway state, Wait-For Graph, checkpoint store, and error taxonomy.
"""
