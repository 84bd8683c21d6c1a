"""
Algorithms package for the Deadlock Prediction & Resolution Simulator.
Contains the per-tick allocator, deadlock detection, risk prediction and resolution.
"""
