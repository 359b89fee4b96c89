"""
Assessment workflow package.

- models: immutable domain objects shared by the packages below
- scoring: the Score Engine
- workflow: the Baseline -> Training -> Final state machine
- repository / lifecycle: attempt persistence and the write-side operations
- controller: HTTP endpoints for students
"""
