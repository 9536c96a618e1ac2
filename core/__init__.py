"""Core (UI-agnostic) DPC activity logic.

This package contains:
- the visit model, predicates and the blob-backed visit store
- reference data loading (CSV -> pandas) and report filtering
- calendar grid building and the visit form controller
- report compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
