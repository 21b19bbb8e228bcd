"""Conversation-side pipeline: collaborator clients and the run coordinator."""
