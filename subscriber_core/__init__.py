"""Core (UI-agnostic) subscriber management logic.

This package contains:
- configuration and logging setup
- the subscriber record model and the error taxonomy
- form validation and subscriber-code generation
- filter normalization and filter/aggregate compute functions (JSON-serializable payloads)
- the bulk import decoder (XLSX/CSV -> validated records)
- record store adapters (local JSON blob, hosted REST table)
- chart helpers (Altair -> Vega-Lite spec dict)
"""
