"""
novel2notion - Mirror a local writing project into a Notion workspace.

Architecture:
- core/: Domain entities, events and ports
- application/: Sync engine (tracker, sequencer, mapper, orchestrator) and commands
- adapters/: Notion client, formatters, storage and configuration
- cli/: Command line interface
"""

__version__ = "0.1.0"
