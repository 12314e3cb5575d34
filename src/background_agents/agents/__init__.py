"""Agent runtime core.

Provides AgentInstance (the execution engine around one agent body),
AgentRegistry for type discovery and configuration, and AgentManager for
coordinated startup/shutdown.
"""
