"""
safety — Shake-to-alert personal safety pipeline.

Sub-modules:
    channels/   — built-in collaborator backends (transport, device)
    detector    — debounced threshold shake detection
    countdown   — cancellable countdown state machine
    dispatcher  — idempotent alert dispatch with per-step failure policy
    contacts    — ordered emergency contact list
    monitor     — wiring, tracking lifetime and status
    models      — data structures shared across the pipeline
"""
