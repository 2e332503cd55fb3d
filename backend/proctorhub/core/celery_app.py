from celery import Celery
from .config import settings
import logging


logging.getLogger('celery.backends.redis').setLevel(logging.ERROR)


celery_app = Celery(
    "proctoring_worker",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        'proctorhub.tasks.file_processing',
    ]
)


celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,

    task_routes={
        'proctorhub.tasks.file_processing.*': {'queue': 'file_processing'},
    },

    worker_prefetch_multiplier=1,
    task_acks_late=True,
    worker_max_tasks_per_child=1000,

    task_soft_time_limit=120,
    task_time_limit=300,

    result_expires=3600,

    broker_connection_retry_on_startup=True,
    broker_transport_options={
        'visibility_timeout': 3600,
    },

    task_default_retry_delay=30,

    # tests and single-process dev run tasks inline
    task_always_eager=settings.celery_task_always_eager,
    task_eager_propagates=True,
)


if __name__ == '__main__':
    celery_app.start()
