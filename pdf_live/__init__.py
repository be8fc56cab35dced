"""PDF Live Server — serve a PDF and refresh every open viewer when it changes.

Watches a directory for filesystem events, re-reads the served PDF when
its modification time and contents have actually changed, and pushes the
new bytes to every connected browser tab over a WebSocket.
"""

__version__ = "1.0.0"
__app_name__ = "PDF Live Server"
