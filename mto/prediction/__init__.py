"""
MTO floor prediction.

- parameters: per-sport parameter set, optionally overridden by YAML
- team_form: TeamStats from recent completed games
- confidence: completeness and confidence scoring
- engine: MTOFloorEngine, the floor estimate for one game
"""
