"""pii_audit

Rule-driven detection, review and reporting of identifiable data in records.

Public API surface:
- pii_audit.cli.main : CLI entrypoint
- pii_audit.scanning.Classifier : per-value detection pipeline
- pii_audit.rules : rule variants, rule sets, pattern generation, rule stores
- pii_audit.reporting : failure report encoding/decoding (with offset repair)
- pii_audit.detectors : add/extend built-in detectors

Scanning, rule management and report persistence are separate packages so they
can be reused on their own (e.g. only decoding reports for review).
"""
__all__ = ["__version__"]
__version__ = "0.3.0"
