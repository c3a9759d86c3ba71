"""
Services Layer

Progression engine modules (standings, qualifiers, bracket_builder,
bracket_advancer, phase_controller) are pure:
- Accept plain dataclasses, never sessions or models
- Return new values; inputs are not mutated

progression_service is the only module that loads from and writes to the
database on the engine's behalf.
"""
