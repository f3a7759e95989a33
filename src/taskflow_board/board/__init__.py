"""Board state and ordering engine.

This package holds the task model, the entity store, the drag-and-drop
ordering resolver, the filter pipeline, and the activity recorder, plus the
engine facade that ties them to persistence.
"""
