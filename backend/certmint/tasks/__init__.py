"""
Celery application factory.
"""

from celery import Celery

celery_app = Celery("certmint", include=["certmint.tasks.stage_tasks"])
celery_app.config_from_object("celeryconfig")
