"""
Conversational model integration: providers and system prompts.
"""
