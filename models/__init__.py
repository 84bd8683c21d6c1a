"""
Core data models: processes, resources, the system snapshot and the error taxonomy.
"""
