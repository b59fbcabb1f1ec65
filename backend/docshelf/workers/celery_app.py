"""
Celery Application Factory

Used only when TASK_DISPATCHER=celery. Workers then share the SQL
repository and a file store reachable from every worker (S3, or a shared
UPLOAD_DIR volume) with the API process.

Queue topology:
  documents.process  — document extraction + analysis

Note: task arguments are logged by Celery. Only document ids travel
through the broker — never file bytes.
"""

from __future__ import annotations

import logging

from celery import Celery
from celery.signals import task_failure, task_postrun, task_prerun
from kombu import Exchange, Queue

from docshelf.core.config import settings

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Queue and exchange definitions
# ---------------------------------------------------------------------------

DOCUMENTS_EXCHANGE = Exchange("documents", type="direct", durable=True)

TASK_QUEUES = (
    Queue(
        "documents.process",
        exchange=DOCUMENTS_EXCHANGE,
        routing_key="documents.process",
        durable=True,
    ),
)

TASK_ROUTES = {
    "docshelf.workers.tasks.process_document": {"queue": "documents.process"},
}

# ---------------------------------------------------------------------------
# Celery app factory
# ---------------------------------------------------------------------------

def create_celery_app() -> Celery:
    app = Celery("docshelf")

    app.conf.update(
        # --- Broker / Backend ---
        broker_url=settings.celery_broker_url,
        result_backend=settings.celery_result_backend,

        # --- Serialization (reject non-JSON messages) ---
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        event_serializer="json",

        # --- Queues ---
        task_queues=TASK_QUEUES,
        task_routes=TASK_ROUTES,
        task_default_queue="documents.process",
        task_default_exchange="documents",
        task_default_routing_key="documents.process",

        # --- Reliability ---
        # No retries: a document is processed at most once and the task
        # itself moves failures to status=error.
        task_acks_late=False,
        worker_prefetch_multiplier=1,

        # --- Result TTL ---
        result_expires=3600,   # state lives in the repository, not Celery results

        # --- Timezone ---
        timezone="UTC",
        enable_utc=True,

        # --- Worker ---
        worker_max_tasks_per_child=200,   # recycle workers to bound parser memory
    )

    app.autodiscover_tasks(["docshelf.workers"])

    return app


celery_app = create_celery_app()


# ---------------------------------------------------------------------------
# Celery signals: structured task logging
# ---------------------------------------------------------------------------

@task_prerun.connect
def on_task_prerun(task_id, task, args, kwargs, **_):
    logger.info(
        "Task start | task_id=%s task=%s doc=%s",
        task_id, task.name, kwargs.get("document_id", "?"),
    )


@task_postrun.connect
def on_task_postrun(task_id, task, args, kwargs, retval, state, **_):
    logger.info(
        "Task end | task_id=%s task=%s state=%s doc=%s",
        task_id, task.name, state, kwargs.get("document_id", "?"),
    )


@task_failure.connect
def on_task_failure(task_id, exception, args, kwargs, traceback, einfo, **_):
    logger.error(
        "Task failed | task_id=%s doc=%s error=%s",
        task_id, kwargs.get("document_id", "?"), exception,
        exc_info=True,
    )
