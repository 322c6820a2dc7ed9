"""
Docker Log Dashboard

Lists the containers running on a host and streams each container's live
output to the browser over a WebSocket.
"""

__version__ = "0.1.0"
