"""
Voice Translation Session Orchestrator.

Turn-based spoken conversation between two speakers: capture -> transcribe ->
translate -> speak, with a per-session message ledger and running accuracy.

Components:
- Capture Controller: Idle -> Listening -> Processing -> Idle
- Translation Pipeline: one in-flight translation per session
- Turn Coordinator: active speaker and language pair
- Playback Controller: newest translation supersedes the one speaking
- Session Lifecycle Manager: owns the session and composes the above
"""
