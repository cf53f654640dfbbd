"""
autoclaw - stablecoin FX and yield agent core for Celo (Mento Broker)
"""

__version__ = "0.1.0"
