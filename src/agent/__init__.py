"""
agent - Bounded LLM + tool loop for product search.

Contains the tool registry and dispatcher, the search tool, memory, the
system prompt, the final-answer parser and the executor that runs the loop.
Depends on domain/ and application/. Never imports from infrastructure/.
"""
