"""
Adapters to the orchestrator's external collaborators.

Transcription, translation, speech synthesis, persistence and identity are all
reached through the contracts in orchestrator.interfaces; the classes here are
the concrete implementations the service wires up.
"""
