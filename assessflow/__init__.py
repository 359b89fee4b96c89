"""
AssessFlow Assessment Platform

Backend for a multi-tenant Baseline -> Training -> Final assessment programme.

The platform features:
1. Workflow-driven attempts: students are served the Baseline or Final assessment
   according to their training status
2. Automatic grading of MCQ, boolean and free-text questions
3. Adaptive Final assessments restricted to the student's weak Baseline modules
4. Admin and student dashboards plus cohort reports computed from stored attempts
"""

__version__ = "0.1.0"
