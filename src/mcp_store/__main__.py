"""
Entry point for running mcp_store as a module.

Allows running the router via:
    python -m mcp_store
"""

from mcp_store.supervisor import main

if __name__ == "__main__":
    main()
