#!/usr/bin/env python3
"""
Celery worker startup script for the recording processing queue

    python celery_worker.py worker -Q file_processing --loglevel=info
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from proctorhub.core.celery_app import celery_app

if __name__ == '__main__':
    celery_app.start()
