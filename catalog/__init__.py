"""catalog/ -- Task catalog and solution queue for the grader.

These are plain create/read stores consumed by the API routes. Grading
happens in an external worker that drains the solutions table.

Layer rule: catalog/ imports only stdlib + third-party libraries.
It does NOT import from api/ or auth/.
"""
