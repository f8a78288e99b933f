"""
Operator console for the WireGuard mesh master.

Lists registered workers, queries a worker's status and registers new workers.
"""
