"""
External backends: LLM providers and the judgment oracle built on them.
"""
