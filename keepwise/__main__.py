"""
Entry point for python -m keepwise

Starts the HTTP server with the configured host and port.
"""
from keepwise.server import main

if __name__ == '__main__':
    main()
