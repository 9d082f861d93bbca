"""
Prompts Package - planner prompt templates
"""
