"""Orchestration pipeline -- intake, Intelligence Oracle adapter, gate, sessions.

A processing cycle builds an OrchestrationRequest, asks the oracle for an
OrchestrationRecord, and lets the OrchestrationGate decide whether the
record is actionable. Passed records become sessions whose dispatch queue
and sync connectors the caller drives explicitly.
"""
