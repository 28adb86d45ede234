"""
Turn evaluators - extract durable memories from conversation turns.

Hosts call validate() then handle() on each evaluator per turn:
- LessonExtractor: management lessons from task outcomes and feedback
- FactExtractor: reusable facts from the agent's own responses
- PersonalityExtractor: communication traits, sampled periodically
"""
