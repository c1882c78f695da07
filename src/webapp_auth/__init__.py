"""
webapp-auth: JWT session auth for a web application (API server and client).
"""

__version__ = "0.1.0"
