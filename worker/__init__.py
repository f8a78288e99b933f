"""
WireGuard worker agent.

Receives interface and peer configuration from the mesh master and applies it
with wg(8) and wg-quick(8).
"""

__version__ = "1.0.0"
