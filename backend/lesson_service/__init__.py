"""
Lesson scheduling and enrollment engine.

Build the service once per process and share it across threads:

    from lesson_service.bootstrap import build_lesson_service

    service = build_lesson_service(hook=notify)
"""

__version__ = "0.1.0"
